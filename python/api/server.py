"""
FastAPI Watchlist Screening API Server

Provides REST endpoints over the batch screening engine.

Usage:
    uvicorn api.server:app --reload --port 8000
"""

import os
import time
import uuid
import logging
import tempfile
import asyncio
import contextvars
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Optional

import psutil
from fastapi import FastAPI, HTTPException, UploadFile, File, Depends, Query
from fastapi.responses import RedirectResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from api.models import (
    BatchScreeningRequest,
    BatchScreeningResponse,
    CapabilitiesResponse,
    DataReloadResponse,
    ErrorResponse,
    HealthResponse,
    NameScreeningRequest,
)
from api.middleware import (
    setup_cors,
    setup_exception_handlers,
    RequestLoggingMiddleware,
)
from config_manager import get_config, ConfigManager, ConfigurationError
from screener import BatchScreener
from screening.index import WatchlistStore
from screening.metrics import get_screening_metrics
from screening.registry import DataSourceRegistry

# Setup logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Environment variables with defaults
API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))
DATA_DIR = os.getenv("DATA_DIR")
MAX_UPLOAD_SIZE_MB = int(os.getenv("MAX_UPLOAD_SIZE_MB", "10"))
CONFIG_PATH = os.getenv("CONFIG_PATH")

ALLOWED_CSV_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "application/octet-stream",
    "application/csv",
}

# Global state
_screener: Optional[BatchScreener] = None
_config: Optional[ConfigManager] = None
_startup_time: Optional[datetime] = None
_reload_lock = asyncio.Lock()  # Serializes snapshot reloads
_executor = ThreadPoolExecutor(max_workers=4)  # Screening and file loading run off the event loop

_ERROR_RESPONSES = {
    422: {"model": ErrorResponse, "description": "Invalid batch or record"},
    503: {"model": ErrorResponse, "description": "No watchlist data available"},
    500: {"model": ErrorResponse, "description": "Internal server error"},
}


def get_screener() -> BatchScreener:
    """Dependency to get the screener instance."""
    if _screener is None:
        raise HTTPException(
            status_code=503, detail="Screener not initialized. Service is starting up."
        )
    return _screener


def get_config_instance() -> ConfigManager:
    """Dependency to get the config instance."""
    global _config
    if _config is None:
        _config = get_config(CONFIG_PATH)
    return _config


async def _in_executor(func, *args, **kwargs):
    # Worker threads inherit the request id set by the logging middleware
    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    return await loop.run_in_executor(_executor, partial(context.run, func, *args, **kwargs))


# Create FastAPI application
app = FastAPI(
    title="Watchlist Screening API",
    description="Batch identity screening against sanctions and PEP watchlists",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
)

# Setup middleware
setup_cors(app)
app.add_middleware(RequestLoggingMiddleware)
setup_exception_handlers(app)


@app.on_event("startup")
async def startup():
    """Initialize the screener and publish the first snapshot."""
    global _screener, _config, _startup_time

    logger.info("Starting Watchlist Screening API...")
    start_time = time.time()

    try:
        _config = get_config(CONFIG_PATH)
        screener = BatchScreener(config=_config, store=WatchlistStore(),
                                 registry=DataSourceRegistry())

        snapshot = await _in_executor(screener.load_data, DATA_DIR)
        _screener = screener
        _startup_time = datetime.now(timezone.utc)

        live = screener.registry.live_codes()
        if not live:
            logger.warning("No watchlist loaded; screening requests will get 503 "
                           "unless they allow demo data")
        logger.info(
            "API ready: %d entries (%s) snapshot %s loaded in %.2f seconds",
            snapshot.entry_count(), ",".join(live) or "none", snapshot.version,
            time.time() - start_time,
        )

    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        raise


@app.on_event("shutdown")
async def shutdown():
    logger.info("Shutting down Watchlist Screening API...")
    _executor.shutdown(wait=False)


@app.post(
    "/api/v1/screen/batch",
    response_model=BatchScreeningResponse,
    responses=_ERROR_RESPONSES,
    summary="Screen a batch of records",
    description="Screen up to the configured maximum of identity records; results keep input order",
)
async def screen_batch(
    request: BatchScreeningRequest,
    screener: BatchScreener = Depends(get_screener),
):
    start_time = time.time()
    result = await _in_executor(
        screener.screen_batch, request.to_records(), request.options.to_options()
    )
    body = result.to_dict()
    body["processingTimeMs"] = int((time.time() - start_time) * 1000)
    return body


@app.post(
    "/api/v1/screen",
    response_model=BatchScreeningResponse,
    responses=_ERROR_RESPONSES,
    summary="Quick check of one name",
)
async def screen_name(
    request: NameScreeningRequest,
    screener: BatchScreener = Depends(get_screener),
):
    """Single-name check; the response has exactly one result."""
    start_time = time.time()
    result = await _in_executor(
        screener.screen_name, request.name, request.type, request.options.to_options()
    )
    body = result.to_dict()
    body["processingTimeMs"] = int((time.time() - start_time) * 1000)
    return body


@app.post(
    "/api/v1/screen/bulk",
    response_model=BatchScreeningResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Not a CSV file"},
        413: {"model": ErrorResponse, "description": "File too large"},
        **_ERROR_RESPONSES,
    },
    summary="Bulk screen from CSV",
    description="Upload a CSV with a name column (full name / fullname also accepted)",
)
async def bulk_screen(
    file: UploadFile = File(..., description="CSV with name, type, dob, country, id number, aliases"),
    lists: Optional[str] = Query(default=None, description="Comma-separated list codes"),
    threshold: Optional[float] = Query(default=None, description="Match threshold (0-1)"),
    allow_demo_data: bool = Query(default=False, alias="allowDemoData"),
    screener: BatchScreener = Depends(get_screener),
):
    """Bulk screen records from a CSV file.

    Streams the upload to disk so large files never sit in memory.
    """
    start_time = time.time()

    if file.content_type and file.content_type.lower() not in ALLOWED_CSV_CONTENT_TYPES:
        if "csv" not in file.content_type.lower():
            raise HTTPException(status_code=400, detail="File must be a CSV")

    max_size_bytes = MAX_UPLOAD_SIZE_MB * 1024 * 1024
    temp_dir = Path(tempfile.gettempdir()) / "watchlist_bulk"
    temp_dir.mkdir(exist_ok=True)
    temp_path = temp_dir / f"{uuid.uuid4()}.csv"

    try:
        total_size = 0
        with open(temp_path, "wb") as file_handle:
            while True:
                chunk = await file.read(8192)
                if not chunk:
                    break
                total_size += len(chunk)
                if total_size > max_size_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large. Maximum size is {MAX_UPLOAD_SIZE_MB}MB",
                    )
                file_handle.write(chunk)

        options = {"lists": lists, "threshold": threshold, "allowDemoData": allow_demo_data}
        try:
            result = await _in_executor(screener.bulk_screen, temp_path, options)
        except UnicodeDecodeError:
            raise HTTPException(status_code=400, detail="CSV must be UTF-8 encoded")

        body = result.to_dict()
        body["processingTimeMs"] = int((time.time() - start_time) * 1000)
        return body

    finally:
        if temp_path.exists():
            try:
                temp_path.unlink()
            except OSError as e:
                logger.error("Failed to cleanup temp file: path=%s error=%s", temp_path, e)


@app.get(
    "/api/v1/screening/lists",
    response_model=CapabilitiesResponse,
    summary="Capability discovery",
    description="Lists, default threshold, batch limit and per-source liveness",
)
async def screening_lists(screener: BatchScreener = Depends(get_screener)):
    return screener.capabilities().to_dict()


@app.get(
    "/api/v1/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check service health and data status",
)
async def health_check(
    screener: BatchScreener = Depends(get_screener),
    config: ConfigManager = Depends(get_config_instance),
):
    """Return health status including entry counts. Always returns HTTP 200."""
    try:
        snapshot = screener.store.current()
        memory_usage_mb = round(psutil.Process().memory_info().rss / (1024 * 1024), 2)

        uptime_seconds = None
        if _startup_time:
            uptime_seconds = int((datetime.now(timezone.utc) - _startup_time).total_seconds())

        live_lists = list(screener.registry.live_codes())
        return HealthResponse(
            status="healthy" if live_lists else "degraded",
            entries_loaded=snapshot.entry_count(),
            snapshot_version=snapshot.version,
            live_lists=live_lists,
            algorithm_version=config.algorithm.version,
            memory_usage_mb=memory_usage_mb,
            uptime_seconds=uptime_seconds,
            screening=get_screening_metrics(),
        )
    except Exception as e:
        logger.exception("Health check failed")
        return HealthResponse(
            status="error",
            entries_loaded=0,
            algorithm_version="unknown",
            error_message=str(e),
        )


@app.post(
    "/api/v1/data/reload",
    response_model=DataReloadResponse,
    responses={500: {"model": ErrorResponse, "description": "Reload failed"}},
    summary="Reload watchlist data",
    description="Re-read the list files and publish a new snapshot",
)
async def reload_data(screener: BatchScreener = Depends(get_screener)):
    """Build a new snapshot and swap it in.

    In-flight batches keep the snapshot they pinned; the lock only
    keeps two reloads from racing each other.
    """
    start_time = time.time()
    async with _reload_lock:
        snapshot = await _in_executor(screener.load_data, DATA_DIR)

    status = snapshot.get_data_source_status(screener.registry)
    return DataReloadResponse(
        success=any(s.live for s in status.values()),
        snapshot_version=snapshot.version,
        total_entries=snapshot.entry_count(),
        data_source_status={code: s.to_dict() for code, s in status.items()},
        processing_time_ms=int((time.time() - start_time) * 1000),
    )


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus exposition"""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to API documentation."""
    return RedirectResponse(url="/api/docs")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=API_HOST, port=API_PORT)
