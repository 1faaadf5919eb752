"""
Request-level operations behind the HTTP endpoints.

Each function returns a dict matching the API's response envelope.
"""

from __future__ import annotations

import base64
import hashlib
import io
import logging
from typing import Any, Dict, Iterable, List

from .codec import export_rows, import_rows
from .models import CodecOptions
from .rules import TARGET_ENCODING
from .sources import text_source
from .tickers import extract_tickers, extract_tickers_from_zip

logger = logging.getLogger(__name__)


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def export_csv(rows: Iterable[Iterable[Any]], options: CodecOptions) -> Dict[str, Any]:
    outp = io.StringIO(newline="")
    count = export_rows(rows, outp, **options.codec_kwargs())
    data = outp.getvalue().encode(TARGET_ENCODING)

    logger.info("Exported %d rows (%d bytes)", count, len(data))
    return {
        "csv": {
            "sha256": _sha256_hex(data),
            "encoding": TARGET_ENCODING,
            "content_b64": base64.b64encode(data).decode("ascii"),
        },
        "rows": count,
    }


def import_csv_bytes(raw: bytes, options: CodecOptions) -> Dict[str, Any]:
    """
    Decode bytes and split them into records.

    Blank lines come back as empty records and are counted in the summary.
    """
    source, decoding = text_source(raw)

    records: List[List[str]] = []
    max_columns = 0
    empty_rows = 0
    with source:
        for record in import_rows(source, **options.codec_kwargs()):
            if not record:
                empty_rows += 1
            max_columns = max(max_columns, len(record))
            records.append(record)

    logger.info("Imported %d rows, widest %d columns", len(records), max_columns)
    return {
        "records": records,
        "summary": {
            "rows": len(records),
            "max_columns": max_columns,
            "empty_rows": empty_rows,
        },
        "decoding": decoding,
    }


def tickers_from_upload(filename: str, raw: bytes) -> Dict[str, Any]:
    if filename.lower().endswith(".zip"):
        tickers = extract_tickers_from_zip(raw)
    else:
        source, _ = text_source(raw)
        with source:
            tickers = extract_tickers(source)

    logger.info("Extracted %d tickers from %s", len(tickers), filename)
    return {"count": len(tickers), "tickers": tickers}
