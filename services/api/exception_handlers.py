"""FastAPI exception handlers for custom exceptions."""

from __future__ import annotations

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import (
    ConfigurationError,
    DownloadError,
    NotFoundError,
    R2UploaderError,
    ResolutionError,
    SizeLimitError,
    UploadError,
)

# HTTP_413_REQUEST_ENTITY_TOO_LARGE in older Starlette releases
HTTP_413_CONTENT_TOO_LARGE = 413


def status_code_for(exc: R2UploaderError) -> int:
    if isinstance(exc, ConfigurationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (NotFoundError, ResolutionError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, SizeLimitError):
        return HTTP_413_CONTENT_TOO_LARGE
    if isinstance(exc, (UploadError, DownloadError)):
        return status.HTTP_502_BAD_GATEWAY
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def uploader_exception_handler(request: Request, exc: R2UploaderError) -> JSONResponse:
    """Handle uploader-specific exceptions."""
    status_code = status_code_for(exc)

    logger.error(
        "Uploader exception: {type} - {message}",
        type=type(exc).__name__,
        message=str(exc),
        details=exc.details,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


__all__ = ["status_code_for", "uploader_exception_handler"]
