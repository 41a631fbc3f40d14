from __future__ import annotations

import os
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from loguru import logger

from core.media import mime_type_for_name
from core.publish.factory import create_local_storage, create_publisher, create_uploader
from core.publish.paste import ConfirmationOutcome, PasteRequest, handle_paste
from core.publish.publisher import Publisher
from core.settings import Settings, get_settings
from core.storage import ObjectUploader
from core.storage.local import LocalStorage
from core.vault.references import is_video_asset, render_embed
from services.api.schemas import (
    CorpusResponse,
    PasteResponse,
    PublishDocumentRequest,
    PublishFolderRequest,
    PublishFolderResponse,
    PublishResponse,
    PublishTextRequest,
    UploadResponse,
)


router = APIRouter(prefix="/v1")


def get_uploader() -> ObjectUploader:
    return create_uploader(get_settings())


def get_publisher(uploader: Annotated[ObjectUploader, Depends(get_uploader)]) -> Publisher:
    return create_publisher(get_settings(), uploader=uploader)


def get_app_settings() -> Settings:
    return get_settings()


def get_local_store(settings: Annotated[Settings, Depends(get_app_settings)]) -> LocalStorage:
    return create_local_storage(settings)


def _dispatch_publish_folder(folder: str | None, write: bool | None) -> str | None:
    if not os.getenv("CELERY_BROKER_URL"):
        return None
    try:
        from services.worker.tasks.publish_vault import publish_folder

        task = publish_folder.delay(folder, write)
        logger.info("[publish-folder] queued {folder} as task {task}", folder=folder or "<vault>", task=task.id)
        return str(task.id)
    except Exception as exc:  # pragma: no cover - celery misconfiguration
        logger.warning("[publish-folder] Celery dispatch failed: {error}", error=exc)
        return None


@router.post("/upload", response_model=UploadResponse, tags=["upload"])
async def upload_file(
    file: Annotated[UploadFile, File(description="Image or video to upload")],
    uploader: Annotated[ObjectUploader, Depends(get_uploader)],
) -> UploadResponse:
    if not file.filename:
        raise HTTPException(status_code=400, detail="File name is missing")
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")

    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mime_type_for_name(file.filename)

    url = await uploader.upload(payload, file.filename, mime_type)
    video = mime_type.startswith("video/") or is_video_asset(file.filename)
    return UploadResponse(url=url, embed=render_embed(url, video=video), mime_type=mime_type, size=len(payload))


@router.post("/paste", response_model=PasteResponse, tags=["upload"])
async def paste_files(
    files: Annotated[list[UploadFile], File(description="Pasted or dropped files")],
    uploader: Annotated[ObjectUploader, Depends(get_uploader)],
    local_store: Annotated[LocalStorage, Depends(get_local_store)],
    settings: Annotated[Settings, Depends(get_app_settings)],
    text: Annotated[str, Form()] = "",
    offset: Annotated[int | None, Form(ge=0)] = None,
    outcome: Annotated[ConfirmationOutcome, Form()] = ConfirmationOutcome.UPLOAD,
    drop: Annotated[bool, Form(description="Drop events keep no local copy on failure")] = False,
) -> PasteResponse:
    requests = [
        PasteRequest.from_clipboard(await file.read(), file.filename, file.content_type or "application/octet-stream")
        for file in files
    ]
    result = await handle_paste(
        requests,
        outcome,
        text,
        offset,
        uploader=uploader,
        local_store=local_store,
        settings=settings,
        local_fallback=not drop,
    )
    return PasteResponse(
        text=result.text,
        uploaded=result.uploaded,
        stored_locally=result.stored_locally,
        failed=result.failed,
        confirm_before_upload=result.settings.upload.confirm_before_upload,
    )


@router.post("/publish", response_model=PublishResponse, tags=["publish"])
async def publish_text(
    request: PublishTextRequest,
    publisher: Annotated[Publisher, Depends(get_publisher)],
) -> PublishResponse:
    result = await publisher.publish_text(request.text, request.document_path)
    return PublishResponse.from_result(result)


@router.post("/publish/document", response_model=PublishResponse, tags=["publish"])
async def publish_document(
    request: PublishDocumentRequest,
    publisher: Annotated[Publisher, Depends(get_publisher)],
) -> PublishResponse:
    if not publisher.vault.exists(request.path):
        raise HTTPException(status_code=404, detail=f"Note not found: {request.path}")
    result = await publisher.publish_document(request.path, write=request.write)
    return PublishResponse.from_result(result)


@router.post("/publish/folder", response_model=PublishFolderResponse, tags=["publish"])
async def publish_folder(
    request: PublishFolderRequest,
    publisher: Annotated[Publisher, Depends(get_publisher)],
) -> PublishFolderResponse:
    if request.background:
        task_id = _dispatch_publish_folder(request.folder, request.write)
        if task_id is not None:
            return PublishFolderResponse(queued=True, task_id=task_id)
    corpus = await publisher.publish_folder(request.folder, write=request.write)
    return PublishFolderResponse(queued=False, result=CorpusResponse.from_result(corpus))


__all__ = ["router", "get_uploader", "get_publisher", "get_app_settings", "get_local_store"]
