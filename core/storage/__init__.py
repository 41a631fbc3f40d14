"""Storage abstraction (R2 object store or local vault attachments)."""

from __future__ import annotations

from typing import Protocol


class ObjectUploader(Protocol):
    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:  # returns public url
        ...


class AttachmentStore(Protocol):
    def put_bytes(self, name: str, data: bytes) -> str:  # returns vault path
        ...
