"""
Line sources for the codec.

The codec never opens or closes anything; these helpers own the stream for
the lifetime of one iteration and release it on every exit path. Streams are
opened with newline="" so line breaks inside quoted values reach the codec
untranslated.
"""

from __future__ import annotations

import codecs
import io
import logging
import zipfile
from pathlib import Path
from typing import IO, Any, Dict, Iterator, List, Optional, Tuple, Union

from charset_normalizer import from_bytes

from .codec import Replacements, import_rows
from .rules import DEFAULT_FIELD_SEPARATOR

logger = logging.getLogger(__name__)

_UTF8_BOM = b"\xef\xbb\xbf"

# Bytes inspected when guessing the encoding of a stream.
DETECTION_SAMPLE_BYTES = 16 * 1024


def _decodes(sample: bytes, encoding: str, final: bool) -> bool:
    try:
        codecs.getincrementaldecoder(encoding)().decode(sample, final=final)
    except (UnicodeDecodeError, LookupError):
        return False
    return True


def detect_encoding(sample: bytes, final: bool = True) -> Dict[str, Any]:
    """
    Pick the codec settings for bytes starting with sample.

    Rules:
    - Detect encoding best-effort via charset-normalizer.
    - A UTF-8 BOM selects utf-8-sig so the BOM is never returned as text.
    - If the guess cannot decode the sample, try UTF-8, then UTF-8 with
      replacement characters so the caller always gets text back.

    Pass final=False when sample is only a prefix; a character cut at the end
    of the sample is then not counted as a decoding failure.
    """
    detected = None
    match = from_bytes(sample).best()
    if match is not None:
        detected = match.encoding

    decode_used = detected or "utf-8"
    if sample.startswith(_UTF8_BOM) and decode_used.lower().replace("-", "_") in ("utf_8", "utf8"):
        decode_used = "utf-8-sig"

    errors = "strict"
    decode_fallback = False
    if not _decodes(sample, decode_used, final):
        decode_fallback = True
        decode_used = "utf-8-sig"
        if not _decodes(sample, decode_used, final):
            errors = "replace"
        logger.warning("Could not decode input as %s, fell back to %s (%s)", detected, decode_used, errors)

    return {
        "detected": detected,
        "decode_used": decode_used,
        "decode_fallback": decode_fallback,
        "errors": errors,
    }


def decode_bytes(raw: bytes) -> Tuple[str, Dict[str, Any]]:
    """Decode in-memory CSV bytes to text, with the detection report."""
    report = detect_encoding(raw)
    return raw.decode(report["decode_used"], errors=report["errors"]), report


def text_source(raw: bytes) -> Tuple[io.StringIO, Dict[str, Any]]:
    """Decoded text stream over in-memory bytes, line breaks untranslated."""
    text, report = decode_bytes(raw)
    return io.StringIO(text, newline=""), report


def _sniff(binary: IO[bytes]) -> Dict[str, Any]:
    return detect_encoding(binary.read(DETECTION_SAMPLE_BYTES), final=False)


def open_records(
    path: Union[str, Path],
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
    encoding: Optional[str] = None,
) -> Iterator[List[str]]:
    """
    Yield the records of a CSV file, reading it one physical line at a time.

    When no encoding is given it is detected from the first bytes of the file.
    The file is closed when iteration finishes, fails, or the generator is
    closed early.
    """
    path = Path(path)
    errors = "strict"
    if encoding is None:
        with open(path, "rb") as fp:
            report = _sniff(fp)
        encoding, errors = report["decode_used"], report["errors"]
        logger.debug("Reading %s as %s", path, encoding)

    with open(path, "r", encoding=encoding, errors=errors, newline="") as source:
        yield from import_rows(source, field_separator, trim_white_space, replace)


def iter_zip_records(
    archive: Union[str, Path, bytes, io.BufferedIOBase],
    field_separator: str = DEFAULT_FIELD_SEPARATOR,
    trim_white_space: bool = True,
    replace: Replacements = None,
) -> Iterator[Tuple[str, List[str]]]:
    """Yield (member name, record) for every .csv member of a zip archive."""
    if isinstance(archive, bytes):
        archive = io.BytesIO(archive)

    with zipfile.ZipFile(archive) as zf:
        for info in zf.infolist():
            if info.is_dir() or not info.filename.lower().endswith(".csv"):
                continue
            with zf.open(info) as member:
                report = _sniff(member)
            logger.debug("Reading member %s as %s", info.filename, report["decode_used"])

            with io.TextIOWrapper(
                zf.open(info),
                encoding=report["decode_used"],
                errors=report["errors"],
                newline="",
            ) as source:
                for record in import_rows(source, field_separator, trim_white_space, replace):
                    yield info.filename, record
