import logging
import zipfile
from typing import Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from .config import settings
from .models import (
    CodecOptions,
    ExportRequest,
    ExportResponse,
    HealthResponse,
    ImportResponse,
    TickersResponse,
)
from .service import export_csv, import_csv_bytes, tickers_from_upload

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.project_name,
    description="Streaming CSV encoding and decoding for market data pipelines",
    version=settings.version,
)


async def _read_upload(file: UploadFile, extensions: tuple) -> bytes:
    name = (file.filename or "").lower()
    if not name.endswith(extensions):
        logger.warning("Rejected upload %r: unsupported extension", file.filename)
        raise HTTPException(
            status_code=422,
            detail=f"Only {', '.join(extensions)} files are supported",
        )

    raw = await file.read()
    if len(raw) > settings.max_upload_bytes:
        logger.warning("Rejected upload %r: %d bytes", file.filename, len(raw))
        raise HTTPException(status_code=413, detail="Upload too large")
    return raw


@app.get("/health", response_model=HealthResponse)
def health():
    return {"ok": True, "version": settings.version}


@app.post("/export", response_model=ExportResponse)
def export(request: ExportRequest):
    return export_csv(request.rows, request.options)


@app.post("/import", response_model=ImportResponse)
async def import_csv(
    file: UploadFile = File(...),
    fieldSeparator: Optional[str] = Form(None),
    trimWhiteSpace: Optional[bool] = Form(None),
):
    raw = await _read_upload(file, (".csv", ".txt"))

    supplied = {}
    if fieldSeparator is not None:
        supplied["fieldSeparator"] = fieldSeparator
    if trimWhiteSpace is not None:
        supplied["trimWhiteSpace"] = trimWhiteSpace
    try:
        options = CodecOptions(**supplied)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False)) from e

    return import_csv_bytes(raw, options)


@app.post("/tickers", response_model=TickersResponse)
async def tickers(file: UploadFile = File(...)):
    raw = await _read_upload(file, (".csv", ".zip"))
    try:
        return tickers_from_upload(file.filename, raw)
    except zipfile.BadZipFile as e:
        logger.warning("Rejected upload %r: %s", file.filename, e)
        raise HTTPException(status_code=400, detail="Corrupt zip archive") from e
