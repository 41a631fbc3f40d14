"""Build uploaders and publishers from settings.

Objects are rebuilt whenever settings change; none of them is mutated after
construction.
"""

from __future__ import annotations

from pathlib import Path

import httpx

from core.publish.downloader import ImageDownloader
from core.publish.publisher import PublishOptions, Publisher
from core.settings import Settings
from core.storage import ObjectUploader
from core.storage.local import LocalStorage
from core.storage.r2 import R2Uploader
from core.vault.filesystem import FileSystemVault, Vault


def create_uploader(settings: Settings, *, client: httpx.AsyncClient | None = None) -> R2Uploader:
    """Raises ``ConfigurationError`` when credentials, endpoint or bucket are missing."""
    return R2Uploader(
        settings.r2.to_target(),
        client=client,
        timeout=settings.upload.request_timeout_seconds,
    )


def create_vault(settings: Settings, root: Path | None = None) -> FileSystemVault:
    return FileSystemVault(
        root or settings.vault.root_path,
        document_extensions=tuple(settings.vault.document_extensions),
    )


def create_local_storage(settings: Settings, root: Path | None = None) -> LocalStorage:
    return LocalStorage(root or settings.vault.root_path, settings.vault.attachment_folder)


def publish_options(settings: Settings) -> PublishOptions:
    return PublishOptions(
        use_image_name_as_alt_text=settings.upload.use_image_name_as_alt_text,
        update_original_document=settings.upload.update_original_document,
        upload_external_images=settings.upload.upload_external_images,
        attachment_folder=settings.vault.attachment_folder,
    )


def create_publisher(
    settings: Settings,
    *,
    uploader: ObjectUploader | None = None,
    vault: Vault | None = None,
) -> Publisher:
    downloader = None
    if settings.upload.upload_external_images:
        downloader = ImageDownloader(
            max_size_bytes=settings.download.max_size_bytes,
            timeout=settings.download.timeout_seconds,
        )
    return Publisher(
        uploader or create_uploader(settings),
        vault or create_vault(settings),
        options=publish_options(settings),
        downloader=downloader,
    )


__all__ = ["create_uploader", "create_vault", "create_local_storage", "publish_options", "create_publisher"]
