from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import settings
from .rules import FORBIDDEN_SEPARATORS, TARGET_ENCODING
from .tickers import StockTicker

Cell = Union[str, int, float, bool, None]


class CodecOptions(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    field_separator: str = Field(
        default_factory=lambda: settings.field_separator,
        alias="fieldSeparator",
        examples=[","],
    )
    trim_white_space: bool = Field(
        default_factory=lambda: settings.trim_white_space,
        alias="trimWhiteSpace",
    )
    replace: List[Tuple[str, str]] = Field(default_factory=list, examples=[[["\t", " "]]])

    @field_validator("field_separator")
    @classmethod
    def _check_separator(cls, v: str) -> str:
        if len(v) != 1 or v in FORBIDDEN_SEPARATORS:
            raise ValueError("fieldSeparator must be one character other than a quote or line break")
        return v

    @field_validator("replace")
    @classmethod
    def _check_replace(cls, v: List[Tuple[str, str]]) -> List[Tuple[str, str]]:
        for match, _ in v:
            if not match:
                raise ValueError("replace match text must not be empty")
        return v

    def codec_kwargs(self) -> Dict[str, Any]:
        return {
            "field_separator": self.field_separator,
            "trim_white_space": self.trim_white_space,
            "replace": self.replace or None,
        }


class EncodedCsv(BaseModel):
    sha256: str
    encoding: str = Field(default=TARGET_ENCODING)
    content_b64: str


class ExportRequest(BaseModel):
    rows: List[List[Cell]]
    options: CodecOptions = Field(default_factory=CodecOptions)


class ExportResponse(BaseModel):
    csv: EncodedCsv
    rows: int


class ImportSummary(BaseModel):
    rows: int = 0
    max_columns: int = 0
    empty_rows: int = 0


class ImportResponse(BaseModel):
    records: List[List[str]]
    summary: ImportSummary
    decoding: Dict[str, Any] = Field(default_factory=dict)


class TickersResponse(BaseModel):
    count: int
    tickers: List[StockTicker]


class HealthResponse(BaseModel):
    ok: bool = True
    version: Optional[str] = None
