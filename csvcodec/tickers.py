from __future__ import annotations

import io
import logging
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .codec import LineSource, import_record, import_rows
from .sources import iter_zip_records

logger = logging.getLogger(__name__)

# Column order of the supported tickers listing.
TICKER_COLUMNS = ("ticker", "exchange", "asset_type", "price_currency", "start_date", "end_date")


class StockTicker(BaseModel):
    ticker: str
    exchange: str = ""
    asset_type: str = Field(default="", alias="assetType")
    price_currency: str = Field(default="", alias="priceCurrency")
    start_date: Optional[date] = Field(default=None, alias="startDate")
    end_date: Optional[date] = Field(default=None, alias="endDate")

    model_config = ConfigDict(populate_by_name=True)


def parse_optional_date(text: Optional[str]) -> Optional[date]:
    """Date part of an ISO date or datetime string, None if it does not parse."""
    if not text:
        return None
    text = text.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def ticker_from_record(record: List[str]) -> StockTicker:
    cells = list(record[: len(TICKER_COLUMNS)])
    cells += [""] * (len(TICKER_COLUMNS) - len(cells))
    return StockTicker(
        ticker=cells[0],
        exchange=cells[1],
        asset_type=cells[2],
        price_currency=cells[3],
        start_date=parse_optional_date(cells[4]),
        end_date=parse_optional_date(cells[5]),
    )


def extract_tickers(source: LineSource) -> List[StockTicker]:
    """Map every record after the header to a StockTicker."""
    header = import_record(source)
    if header is None:
        return []

    tickers = [ticker_from_record(record) for record in import_rows(source) if record]
    logger.debug("Extracted %d tickers (header: %s)", len(tickers), header)
    return tickers


def extract_tickers_from_zip(archive: Union[str, Path, bytes, io.BufferedIOBase]) -> List[StockTicker]:
    """Tickers from every .csv member of a zip archive, each with its own header."""
    tickers: List[StockTicker] = []
    current = None
    for member, record in iter_zip_records(archive):
        if member != current:
            # First record of each member is its header.
            current = member
            continue
        if record:
            tickers.append(ticker_from_record(record))
    return tickers
