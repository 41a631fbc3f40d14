from __future__ import annotations

import asyncio
from typing import Any

from celery import shared_task
from loguru import logger

from core.publish.factory import create_publisher
from core.settings import Settings, get_settings


async def run_publish_job(
    folder: str | None,
    write: bool | None = None,
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Publish a folder (or the whole vault) and return aggregated counts."""
    publisher = create_publisher(settings or get_settings())
    corpus = await publisher.publish_folder(folder, write=write)
    return {
        "folder": folder,
        "documents": len(corpus.documents),
        "documents_written": corpus.documents_written,
        "success_count": corpus.success_count,
        "error_count": corpus.error_count,
        "cancelled": corpus.cancelled,
    }


@shared_task(name="r2_uploader.publish_folder")
def publish_folder(folder: str | None = None, write: bool | None = None) -> dict[str, Any]:
    logger.info("[worker] publishing {folder}", folder=folder or "<vault>")
    return asyncio.run(run_publish_job(folder, write))
