"""
Error taxonomy and HTTP error rendering
"""
import traceback
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
import structlog

logger = structlog.get_logger()


class ReelError(Exception):
    """Base exception for every failure surfaced to a client."""

    def __init__(self, message: str, code: str = "REEL_ERROR", status_code: int = 500):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class ValidationError(ReelError):
    """Client input errors. Raised before any resource is allocated."""

    def __init__(self, message: str, field: str = None, code: str = "VALIDATION_ERROR"):
        self.field = field
        super().__init__(message, code, 400)


class MissingSourceError(ValidationError):
    def __init__(self, message: str = 'Provide ?url=PNG/JPG or multipart "file"', field: str = "url"):
        super().__init__(message, field=field, code="MISSING_SOURCE")


class MediaTypeError(ValidationError):
    """Source is not an allow-listed image type."""

    def __init__(self, message: str, field: str = None):
        super().__init__(message, field=field, code="DISALLOWED_TYPE")


class SizeLimitError(ReelError):
    """Declared or received payload exceeds the configured byte ceiling."""

    def __init__(self, observed: int, limit: int, declared: bool = False):
        self.observed = observed
        self.limit = limit
        self.declared = declared
        kind = "declared" if declared else "received"
        super().__init__(
            f"Image too large: {kind} {observed} bytes exceeds limit of {limit} bytes",
            "TOO_LARGE",
            413,
        )


class FetchError(ReelError):
    """Upstream network failure, timeout, redirect limit or bad status."""

    def __init__(self, message: str, url: str = None):
        self.url = url
        super().__init__(message, "FETCH_ERROR", 502)


class EncodeError(ReelError):
    """Encoder failure or missing input at encode time."""

    def __init__(self, message: str, artifact_id: str = None):
        self.artifact_id = artifact_id
        super().__init__(message, "ENCODE_ERROR", 500)


def error_payload(code: str, message: str, details: Optional[Any] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {"ok": False, "error": error}


async def reel_exception_handler(request: Request, exc: ReelError):
    """Handle service-specific exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Request failed",
        error_code=exc.code,
        error_message=exc.message,
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
    )

    return JSONResponse(status_code=exc.status_code, content=error_payload(exc.code, exc.message))


async def validation_exception_handler(request: Request, exc: Exception):
    """Handle request schema validation failures."""
    logger.warning(
        "Validation error",
        error_message=str(exc),
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=422,
        content=error_payload("VALIDATION_ERROR", "Input validation failed", str(exc)),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTP error",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(f"HTTP_{exc.status_code}", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions without leaking internals."""
    tb = traceback.format_exc()

    logger.error(
        "Unhandled exception",
        exc_type=type(exc).__name__,
        exc_message=str(exc),
        traceback=tb,
        path=request.url.path,
        method=request.method,
    )

    from api.config import settings

    message = "An internal error occurred"
    details = None
    if settings.DEBUG:
        message = str(exc)
        details = tb

    return JSONResponse(status_code=500, content=error_payload("INTERNAL_ERROR", message, details))
