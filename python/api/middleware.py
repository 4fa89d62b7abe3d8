"""
FastAPI Middleware for Watchlist Screening API

Provides CORS configuration, request logging, and error mapping:

    InputValidationError  -> 422 with code/field/suggestion/record_index
    NoDataSourcesError    -> 503 NO_DATA_SOURCES
    ConfigurationError    -> 503 CONFIGURATION_ERROR
    RequestValidationError-> 422 VALIDATION_ERROR
    anything else         -> 500 INTERNAL_ERROR (message not leaked)
"""

import os
import time
import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from config_manager import ConfigurationError
from screening.errors import InputValidationError, NoDataSourcesError
from screening.metrics import record_request
from security_logger import set_request_context
from xml_utils import sanitize_for_logging

logger = logging.getLogger(__name__)

# Default allowed origins for localhost development
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8000",
]


def allowed_origins() -> List[str]:
    """Origins from the comma-separated CORS_ORIGINS variable, else localhost"""
    cors_origins_env = os.getenv("CORS_ORIGINS", "")
    if cors_origins_env:
        return [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
    return list(DEFAULT_CORS_ORIGINS)


def setup_cors(app: FastAPI) -> None:
    """Configure CORS middleware for the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Processing-Time-MS"],
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Correlates, times and counts every request

    The caller's X-Request-ID is reused when present, otherwise a REQ- id is
    generated; either way it is echoed back and attached to security events.
    Bodies are never logged: they carry names, dates of birth and document
    numbers.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        started = time.perf_counter()
        supplied = request.headers.get("X-Request-ID")
        request_id = set_request_context(sanitize_for_logging(supplied) if supplied else None)
        request.state.request_id = request_id

        logger.debug("-> %s %s request_id=%s", request.method,
                     sanitize_for_logging(request.url.path), request_id)
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error("Request failed: %s %s error=%s request_id=%s",
                         request.method, _route_label(request),
                         sanitize_for_logging(str(exc)), request_id)
            record_request(request.method, _route_label(request), 500,
                           time.perf_counter() - started)
            raise

        elapsed = time.perf_counter() - started
        route = _route_label(request)
        record_request(request.method, route, response.status_code, elapsed)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Time-MS"] = str(int(elapsed * 1000))

        log = logger.warning if response.status_code >= 500 else logger.info
        log("%s %s -> %d in %dms request_id=%s", request.method, route,
            response.status_code, int(elapsed * 1000), request_id)
        return response


def _route_label(request: Request) -> str:
    """Path template of the matched route, keeping metric labels bounded"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def create_error_response(
    code: str,
    message: str,
    status_code: int = 500,
    field: Optional[str] = None,
    suggestion: Optional[str] = None,
    record_index: Optional[int] = None,
) -> JSONResponse:
    """Create a standardized error response.

    Args:
        code: Error code for programmatic handling
        message: Human-readable message
        status_code: HTTP status code
        field: Field that caused the error (optional)
        suggestion: How to fix the error (optional)
        record_index: Position of the offending record (optional)

    Returns:
        JSONResponse with standardized error format
    """
    error_detail = {
        "code": code,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if field:
        error_detail["field"] = field
    if suggestion:
        error_detail["suggestion"] = suggestion
    if record_index is not None:
        error_detail["record_index"] = record_index

    return JSONResponse(status_code=status_code, content={"error": error_detail})


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


async def input_validation_handler(request: Request, exc: InputValidationError) -> JSONResponse:
    """Batch rejected before scoring; the message names the offending record"""
    logger.warning(
        "Input rejected: code=%s field=%s record_index=%s request_id=%s",
        exc.code, exc.field, exc.record_index, _request_id(request),
    )
    return create_error_response(
        code=exc.code,
        message=str(exc),
        status_code=422,
        field=exc.field,
        suggestion=exc.suggestion,
        record_index=exc.record_index,
    )


async def no_data_sources_handler(request: Request, exc: NoDataSourcesError) -> JSONResponse:
    logger.error("No data sources: lists=%s request_id=%s",
                 ",".join(exc.requested_lists), _request_id(request))
    return create_error_response(
        code=NoDataSourcesError.code,
        message=str(exc),
        status_code=503,
        suggestion="Reload watchlist data, or set allowDemoData for non-production use",
    )


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error("Configuration error: %s request_id=%s",
                 sanitize_for_logging(str(exc)), _request_id(request))
    return create_error_response(
        code="CONFIGURATION_ERROR",
        message="Service configuration is invalid. Please contact administrator.",
        status_code=503,
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request body (wrong JSON shape or types)"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = [str(part) for part in first.get("loc", ()) if part != "body"]
    field = ".".join(location) or None
    logger.warning("Request body rejected: field=%s errors=%d request_id=%s",
                   sanitize_for_logging(field or ""), len(errors), _request_id(request))
    return create_error_response(
        code="VALIDATION_ERROR",
        message=first.get("msg", "Invalid request body"),
        status_code=422,
        field=field,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for HTTP exceptions."""
    logger.warning(
        "HTTP exception: status=%d detail=%s request_id=%s",
        exc.status_code,
        sanitize_for_logging(str(exc.detail)),
        _request_id(request),
    )

    return create_error_response(
        code=f"HTTP_{exc.status_code}",
        message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
        status_code=exc.status_code,
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unhandled errors; the message is sanitized to prevent information leakage"""
    logger.error(
        "Unhandled exception: type=%s message=%s request_id=%s",
        type(exc).__name__,
        sanitize_for_logging(str(exc)),
        _request_id(request),
    )
    return create_error_response(
        code="INTERNAL_ERROR",
        message="An unexpected error occurred. Please try again later.",
        status_code=500,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure exception handlers for the application."""
    app.add_exception_handler(InputValidationError, input_validation_handler)
    app.add_exception_handler(NoDataSourcesError, no_data_sources_handler)
    app.add_exception_handler(ConfigurationError, configuration_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
