"""Custom exception hierarchy for the R2 uploader."""

from __future__ import annotations


class R2UploaderError(Exception):
    """Base exception for all uploader-specific errors."""

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(R2UploaderError):
    """Raised when configuration is invalid or missing."""
    pass


class StorageError(R2UploaderError):
    """Raised when object storage operations fail."""
    pass


class UploadError(StorageError):
    """Base class for failures of a single upload."""
    pass


class NetworkError(UploadError):
    """Raised on transport failures (DNS, TLS, connection reset, timeout)."""
    pass


class HttpStatusError(UploadError):
    """Raised when the object store answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int, details: dict[str, str] | None = None) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class ResponseShapeError(UploadError):
    """Raised when no public path can be derived from a successful upload."""
    pass


class ResolutionError(R2UploaderError):
    """Raised when a reference cannot be mapped to a vault path."""
    pass


class NoReferencingContextError(ResolutionError):
    """Raised when relative resolution is requested without a referencing document."""
    pass


class NotFoundError(ResolutionError):
    """Raised when a referenced file is absent after every fallback."""
    pass


class DownloadError(R2UploaderError):
    """Raised when an external image cannot be fetched."""
    pass


class SizeLimitError(DownloadError):
    """Raised when an external image exceeds the download ceiling."""
    pass
