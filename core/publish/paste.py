"""Paste and drop handling, free of any editor event types.

The editor integration turns a clipboard or drop event into ``PasteRequest``
values, asks the user through a ``ConfirmationOutcome`` and hands both to
``handle_paste``, which uploads each request through ``upload_and_embed`` or
stores it with ``LocalStorage``. A placeholder marks the insertion point while
the upload runs.
"""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from loguru import logger

from core.exceptions import ConfigurationError, R2UploaderError
from core.media import is_video_asset
from core.settings import Settings
from core.storage import ObjectUploader
from core.storage.local import LocalStorage
from core.vault.references import render_embed

_PASTE_ID_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class PasteRequest:
    data: bytes
    filename: str
    mime_type: str

    @classmethod
    def from_clipboard(cls, data: bytes, name: str | None, mime_type: str) -> "PasteRequest":
        """Give unnamed clipboard images (``blob``) a ``Pasted image`` name."""
        if not name or name == "blob":
            extension = mime_type.split("/", 1)[1] if "/" in mime_type else "png"
            name = f"Pasted image {int(time.time() * 1000)}.{extension or 'png'}"
        return cls(data=data, filename=name, mime_type=mime_type)

    @property
    def is_uploadable(self) -> bool:
        return self.mime_type.startswith("image/")

    @property
    def is_video(self) -> bool:
        return self.mime_type.startswith("video/") or is_video_asset(self.filename)


def dedupe_requests(requests: Iterable[PasteRequest]) -> list[PasteRequest]:
    """Drop repeats; clipboards often expose one image as both file and item."""
    unique: list[PasteRequest] = []
    for request in requests:
        if any(len(r.data) == len(request.data) and r.mime_type == request.mime_type for r in unique):
            continue
        unique.append(request)
    return unique


class ConfirmationOutcome(str, Enum):
    UPLOAD = "upload"
    UPLOAD_AND_REMEMBER = "upload-and-remember"
    PASTE_LOCALLY = "paste-locally"
    CANCELLED = "cancelled"

    @property
    def should_upload(self) -> bool:
        return self in (ConfirmationOutcome.UPLOAD, ConfirmationOutcome.UPLOAD_AND_REMEMBER)


def apply_confirmation(outcome: ConfirmationOutcome, settings: Settings) -> tuple[bool, Settings]:
    """Return whether to upload and the settings to use from now on.

    "Always upload" turns confirmation off by producing new settings; the
    caller persists them and rebuilds its uploader.
    """
    if outcome is ConfirmationOutcome.UPLOAD_AND_REMEMBER:
        upload = settings.upload.model_copy(update={"confirm_before_upload": False})
        return True, settings.model_copy(update={"upload": upload})
    return outcome.should_upload, settings


def generate_paste_id(length: int = 5) -> str:
    return "".join(random.choice(_PASTE_ID_ALPHABET) for _ in range(length))


def progress_text_for(paste_id: str) -> str:
    return f"![Uploading file...{paste_id}]()"


def insert_placeholder(text: str, paste_id: str, offset: int | None = None) -> str:
    placeholder = progress_text_for(paste_id) + "\n"
    if offset is None:
        return text + placeholder
    offset = max(0, min(offset, len(text)))
    return text[:offset] + placeholder + text[offset:]


def replace_first_occurrence(text: str, search: str, replacement: str) -> str:
    index = text.find(search)
    if index == -1:
        return text
    return text[:index] + replacement + text[index + len(search):]


@dataclass(frozen=True)
class PasteResult:
    text: str
    url: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.url is not None


async def upload_and_embed(
    uploader: ObjectUploader,
    request: PasteRequest,
    text: str,
    paste_id: str,
) -> PasteResult:
    """Upload ``request`` and swap its placeholder in ``text`` for the embed.

    On failure the placeholder becomes an HTML comment carrying the reason so
    the user can see what went wrong where the image would have been.
    """
    placeholder = progress_text_for(paste_id)
    try:
        url = await uploader.upload(request.data, request.filename, request.mime_type)
    except ConfigurationError:
        raise
    except R2UploaderError as exc:
        logger.warning("Upload of {name} failed: {error}", name=request.filename, error=exc.message)
        message = f"Upload failed: {exc.message}"
        return PasteResult(text=replace_first_occurrence(text, placeholder, f"<!--{message}-->"), error=message)

    video = request.is_video or is_video_asset(url)
    embed = render_embed(url, video=video)
    return PasteResult(text=replace_first_occurrence(text, placeholder, embed), url=url)


@dataclass
class PasteOutcome:
    text: str
    settings: Settings
    uploaded: list[str] = field(default_factory=list)
    stored_locally: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _paste_locally(local_store: LocalStorage, request: PasteRequest, text: str, offset: int | None) -> tuple[str, str]:
    vault_path = local_store.put_bytes(request.filename, request.data)
    embed = local_store.embed(vault_path) + "\n"
    if offset is None:
        return text + embed, vault_path
    offset = max(0, min(offset, len(text)))
    return text[:offset] + embed + text[offset:], vault_path


async def handle_paste(
    requests: Iterable[PasteRequest],
    outcome: ConfirmationOutcome,
    text: str,
    offset: int | None = None,
    *,
    uploader: ObjectUploader,
    local_store: LocalStorage,
    settings: Settings,
    local_fallback: bool = True,
) -> PasteOutcome:
    """Run one paste or drop event against ``text``.

    Only ``image/*`` requests are considered, repeats are dropped. The outcome
    is consulted only while ``upload.confirm_before_upload`` is on; "paste
    locally" stores the files in the attachment folder instead. A failed upload
    leaves its failure comment and, with ``local_fallback``, a local copy.
    """
    candidates = dedupe_requests(request for request in requests if request.is_uploadable)
    result = PasteOutcome(text=text, settings=settings)
    if not candidates:
        return result

    if settings.upload.confirm_before_upload:
        should_upload, result.settings = apply_confirmation(outcome, settings)
        if not should_upload:
            if outcome is ConfirmationOutcome.PASTE_LOCALLY:
                for request in candidates:
                    before = result.text
                    result.text, vault_path = _paste_locally(local_store, request, result.text, offset)
                    result.stored_locally.append(vault_path)
                    if offset is not None:
                        offset += len(result.text) - len(before)
            return result

    for request in candidates:
        before = result.text
        paste_id = generate_paste_id()
        pasted = await upload_and_embed(
            uploader, request, insert_placeholder(result.text, paste_id, offset), paste_id
        )
        result.text = pasted.text
        if pasted.ok:
            result.uploaded.append(pasted.url)
        else:
            result.failed.append(request.filename)
            if local_fallback:
                marker = f"<!--{pasted.error}-->\n"
                if offset is None:
                    position = result.text.rfind(marker)
                else:
                    position = result.text.find(marker, offset)
                insert_at = position + len(marker) if position != -1 else None
                result.text, vault_path = _paste_locally(local_store, request, result.text, insert_at)
                result.stored_locally.append(vault_path)
                logger.info("Stored {name} locally after failed upload", name=request.filename)
        if offset is not None:
            offset += len(result.text) - len(before)
    return result


__all__ = [
    "PasteRequest",
    "PasteResult",
    "PasteOutcome",
    "handle_paste",
    "ConfirmationOutcome",
    "apply_confirmation",
    "dedupe_requests",
    "generate_paste_id",
    "progress_text_for",
    "insert_placeholder",
    "replace_first_occurrence",
    "upload_and_embed",
]
