"""Media type table shared by uploads, downloads and embed rendering."""

from __future__ import annotations

import re
from urllib.parse import unquote

EXTENSION_MIME_MAP: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "bmp": "image/bmp",
    "tiff": "image/tiff",
    "tif": "image/tiff",
    "avif": "image/avif",
    "heic": "image/heic",
    "heif": "image/heif",
    "mp4": "video/mp4",
    "mov": "video/quicktime",
    "m4v": "video/x-m4v",
    "webm": "video/webm",
    "ogg": "video/ogg",
    "ogv": "video/ogg",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
    "mpg": "video/mpeg",
    "mpeg": "video/mpeg",
    "mpe": "video/mpeg",
    "m2v": "video/mpeg",
    "3gp": "video/3gpp",
    "3g2": "video/3gpp2",
}

VIDEO_EXTENSIONS = frozenset(
    {"mp4", "mov", "m4v", "webm", "ogg", "ogv", "mkv", "avi", "mpeg", "mpg", "mpe", "m2v", "3gp", "3g2"}
)
IMAGE_EXTENSIONS = frozenset(ext for ext, mime in EXTENSION_MIME_MAP.items() if mime.startswith("image/"))
MEDIA_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS

DEFAULT_MIME_TYPE = "application/octet-stream"

_VIDEO_PATTERN = re.compile(
    r"\.(?:" + "|".join(sorted(VIDEO_EXTENSIONS)) + r")(?:[?#].*)?$"
)


def extension_of(name: str) -> str:
    """Return the lower-cased extension of ``name`` without the dot ('' if none)."""
    base = name.rsplit("/", 1)[-1]
    if "." not in base:
        return ""
    return base.rsplit(".", 1)[-1].lower()


def mime_type_from_extension(extension: str) -> str:
    if not extension:
        return DEFAULT_MIME_TYPE
    return EXTENSION_MIME_MAP.get(extension.lower().lstrip("."), DEFAULT_MIME_TYPE)


def mime_type_for_name(name: str) -> str:
    return mime_type_from_extension(extension_of(name))


def is_video_asset(target: str | None) -> bool:
    """Whether ``target`` names a video file.

    The target is percent-decoded first (the raw string is used when it is not
    valid UTF-8 once decoded); a query string or fragment after the extension
    is allowed.
    """
    if not target:
        return False
    try:
        decoded = unquote(target, errors="strict")
    except UnicodeDecodeError:
        decoded = target
    return _VIDEO_PATTERN.search(decoded.lower()) is not None


def is_media_name(name: str) -> bool:
    return extension_of(name) in MEDIA_EXTENSIONS


__all__ = [
    "EXTENSION_MIME_MAP",
    "VIDEO_EXTENSIONS",
    "IMAGE_EXTENSIONS",
    "MEDIA_EXTENSIONS",
    "DEFAULT_MIME_TYPE",
    "extension_of",
    "mime_type_from_extension",
    "mime_type_for_name",
    "is_video_asset",
    "is_media_name",
]
