"""Failure kinds of the serving pipeline and their HTTP rendering."""

from __future__ import annotations

from enum import Enum

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gcs_origin.server.schema.base import ErrorResponse
from gcs_origin.utils import logging

logger = logging.get_logger(__name__)


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    CONFIGURATION = "configuration"
    STREAM_INTERRUPTED = "stream_interrupted"


class OriginError(Exception):
    kind: ErrorKind


class ConfigurationError(OriginError):
    kind = ErrorKind.CONFIGURATION


class ObjectNotFoundError(OriginError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class TransientStoreError(OriginError):
    """Store failure unrelated to object existence.

    ``public_message`` is what clients see outside development mode.
    """

    kind = ErrorKind.TRANSIENT

    def __init__(self, key: str, public_message: str, detail: str = "") -> None:
        super().__init__(detail or public_message)
        self.key = key
        self.public_message = public_message
        self.detail = detail


class StreamInterrupted(OriginError):
    """The body stopped after headers were committed; nothing can be sent."""

    kind = ErrorKind.STREAM_INTERRUPTED

    def __init__(self, key: str, bytes_written: int, expected: int) -> None:
        super().__init__(f"Stream for {key} interrupted after {bytes_written}/{expected} bytes")
        self.key = key
        self.bytes_written = bytes_written
        self.expected = expected


def error_response(
    status_code: int, error: str, path: str | None = None, message: str | None = None
) -> JSONResponse:
    body = ErrorResponse(error=error, path=path, message=message)
    return JSONResponse(status_code=status_code, content=body.serialize())


def map_error(exc: OriginError, debug: bool = False) -> JSONResponse:
    if isinstance(exc, ObjectNotFoundError):
        return error_response(status.HTTP_404_NOT_FOUND, "File not found", path=exc.key)
    if isinstance(exc, TransientStoreError):
        message = exc.detail if debug and exc.detail else exc.public_message
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", message=message)
    if isinstance(exc, ConfigurationError):
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Server configuration error")
    # StreamInterrupted never reaches here before headers are sent; treat anything else as a plain 500.
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


async def handle_origin_error(request: Request, exc: Exception) -> JSONResponse:
    settings = getattr(request.app.state, "settings", None)
    return map_error(exc, debug=bool(settings and settings.debug))  # type: ignore[arg-type]


async def handle_http_error(request: Request, exc: Exception) -> JSONResponse:
    http_exc = exc if isinstance(exc, StarletteHTTPException) else StarletteHTTPException(500)
    logger.warning(
        "%s %s -> %s", request.method, request.url.path, http_exc.status_code, extra={"status": http_exc.status_code}
    )
    response = error_response(http_exc.status_code, str(http_exc.detail), path=request.url.path)
    if http_exc.headers:
        response.headers.update(http_exc.headers)
    return response


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        exc_info=exc,
        extra={"url": str(request.url), "method": request.method},
    )
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
