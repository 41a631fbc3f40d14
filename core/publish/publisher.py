"""Publish notes: upload every referenced local image and rewrite the links.

One pass over a document::

    extract -> classify -> (resolve -> read -> upload)* -> plan -> apply

References are handled one at a time. A failing reference is counted and left
untouched; the rest of the document is still rewritten.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from loguru import logger

from core.exceptions import ConfigurationError, NotFoundError, R2UploaderError, ResolutionError
from core.media import mime_type_for_name
from core.publish.downloader import ImageDownloader
from core.storage import ObjectUploader
from core.vault.filesystem import Vault
from core.vault.references import (
    ImageReference,
    alt_text_from_target,
    extract_image_tags,
    is_video_asset,
    render_embed,
)
from core.vault.resolver import resolve_reference_path


@dataclass(frozen=True)
class PublishOptions:
    use_image_name_as_alt_text: bool = True
    update_original_document: bool = True
    upload_external_images: bool = False
    attachment_folder: str = "/"


@dataclass(frozen=True)
class Replacement:
    original_text: str
    new_text: str


@dataclass(frozen=True)
class ReferenceFailure:
    target: str
    reason: str


@dataclass
class PublishResult:
    text: str
    success_count: int = 0
    error_count: int = 0
    skipped_remote: int = 0
    found: int = 0
    failures: list[ReferenceFailure] = field(default_factory=list)
    document_path: str | None = None
    written: bool = False

    def summary(self) -> str:
        if self.found == 0:
            return "No images found in the current note."
        if self.success_count == 0 and self.error_count == 0:
            return f"No local images found in the current note ({self.skipped_remote} remote skipped)."
        if self.success_count > 0:
            return f"Successfully uploaded {self.success_count} images. {self.error_count} failed."
        return f"Failed to upload any images. {self.error_count} errors."


@dataclass
class CorpusResult:
    documents: list[PublishResult] = field(default_factory=list)
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return sum(result.success_count for result in self.documents)

    @property
    def error_count(self) -> int:
        return sum(result.error_count for result in self.documents)

    @property
    def documents_written(self) -> int:
        return sum(1 for result in self.documents if result.written)


def apply_replacements(text: str, plan: list[Replacement]) -> str:
    """Substitute every occurrence of each ``original_text``."""
    for replacement in plan:
        text = text.replace(replacement.original_text, replacement.new_text)
    return text


class Publisher:
    def __init__(
        self,
        uploader: ObjectUploader,
        vault: Vault,
        *,
        options: PublishOptions | None = None,
        downloader: ImageDownloader | None = None,
    ) -> None:
        self.uploader = uploader
        self.vault = vault
        self.options = options or PublishOptions()
        self.downloader = downloader
        if self.options.upload_external_images and self.downloader is None:
            self.downloader = ImageDownloader()

    def locate(self, reference: ImageReference, document_path: str | None) -> str:
        """Find the vault file behind a local reference.

        Tried in order: the resolved path, the vault link index, then a scan of
        the whole vault by base name.
        """
        attempted: list[str] = []
        name = reference.target
        try:
            resolved = resolve_reference_path(reference.target, document_path, self.options.attachment_folder)
            name = resolved.name
            attempted.append(resolved.path)
            if self.vault.exists(resolved.path):
                return resolved.path
        except ResolutionError as exc:
            logger.debug("Direct resolution of {target} failed: {error}", target=reference.target, error=exc.message)

        if document_path is not None:
            linked = self.vault.resolve_link(reference.target, document_path)
            if linked:
                return linked

        found = self.vault.find_by_name(name)
        if found:
            return found

        raise NotFoundError(
            f"File not found: {reference.target}",
            {"target": reference.target, "resolved": ", ".join(attempted)},
        )

    def _embed_for(self, reference: ImageReference, url: str, mime_type: str) -> str:
        video = mime_type.startswith("video/") or is_video_asset(reference.target) or is_video_asset(url)
        alt = alt_text_from_target(reference.target) if self.options.use_image_name_as_alt_text else ""
        return render_embed(url, alt, video=video)

    async def _upload_local(
        self,
        reference: ImageReference,
        document_path: str | None,
        cache: dict[str, tuple[str, str]],
    ) -> str:
        path = self.locate(reference, document_path)
        if path not in cache:
            mime_type = mime_type_for_name(path)
            data = await self.vault.read_bytes(path)
            name = path.rsplit("/", 1)[-1]
            cache[path] = (await self.uploader.upload(data, name, mime_type), mime_type)
        url, mime_type = cache[path]
        return self._embed_for(reference, url, mime_type)

    async def _upload_remote(self, reference: ImageReference, cache: dict[str, tuple[str, str]]) -> str:
        if self.downloader is None:
            self.downloader = ImageDownloader()
        source = reference.target
        if source not in cache:
            image = await self.downloader.fetch(source)
            url = await self.uploader.upload(image.data, image.filename, image.mime_type)
            cache[source] = (url, image.mime_type)
        url, mime_type = cache[source]
        return self._embed_for(reference, url, mime_type)

    async def publish_text(
        self,
        text: str,
        document_path: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> PublishResult:
        references = extract_image_tags(text)
        result = PublishResult(text=text, found=len(references), document_path=document_path)
        if not references:
            return result

        local = [ref for ref in references if ref.is_local]
        remote = [ref for ref in references if not ref.is_local]
        downloadable = [ref for ref in remote if ref.target.startswith(("http://", "https://"))]
        if not self.options.upload_external_images:
            result.skipped_remote = len(remote)
            candidates = local
        else:
            result.skipped_remote = len(remote) - len(downloadable)
            candidates = local + downloadable

        if not candidates:
            logger.info("No local images to upload ({skipped} remote skipped)", skipped=result.skipped_remote)
            return result

        plan: list[Replacement] = []
        seen: set[str] = set()
        cache: dict[str, tuple[str, str]] = {}
        for reference in candidates:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Publish cancelled after {count} references", count=len(seen))
                break
            if reference.original_text in seen:
                continue
            seen.add(reference.original_text)
            try:
                if reference.is_local:
                    new_text = await self._upload_local(reference, document_path, cache)
                else:
                    new_text = await self._upload_remote(reference, cache)
            except ConfigurationError:
                raise
            except R2UploaderError as exc:
                result.error_count += 1
                result.failures.append(ReferenceFailure(target=reference.target, reason=exc.message))
                logger.warning(
                    "Failed to upload {target} in {document}: {error}",
                    target=reference.target,
                    document=document_path or "<text>",
                    error=exc.message,
                )
                continue
            except OSError as exc:
                result.error_count += 1
                result.failures.append(ReferenceFailure(target=reference.target, reason=str(exc)))
                logger.warning("Failed to read {target}: {error}", target=reference.target, error=exc)
                continue
            plan.append(Replacement(reference.original_text, new_text))
            result.success_count += 1

        result.text = apply_replacements(text, plan)
        logger.info(result.summary())
        return result

    async def publish_document(
        self,
        path: str,
        *,
        write: bool | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> PublishResult:
        text = await self.vault.read_text(path)
        result = await self.publish_text(text, path, cancel_event=cancel_event)
        should_write = self.options.update_original_document if write is None else write
        if should_write and result.success_count > 0 and result.text != text:
            await self.vault.write_text(path, result.text)
            result.written = True
        return result

    async def publish_folder(
        self,
        folder: str | None = None,
        *,
        write: bool | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CorpusResult:
        corpus = CorpusResult()
        documents = self.vault.list_documents(folder)
        logger.info("Publishing {count} documents in {folder}", count=len(documents), folder=folder or "<vault>")
        for path in documents:
            if cancel_event is not None and cancel_event.is_set():
                corpus.cancelled = True
                break
            try:
                result = await self.publish_document(path, write=write, cancel_event=cancel_event)
            except ConfigurationError:
                raise
            except (R2UploaderError, OSError, UnicodeDecodeError) as exc:
                logger.warning("Skipping {path}: {error}", path=path, error=exc)
                result = PublishResult(text="", error_count=1, document_path=path)
                result.failures.append(ReferenceFailure(target=path, reason=str(exc)))
            corpus.documents.append(result)
        logger.info(
            "Published {count} documents: {success} uploaded, {errors} failed",
            count=len(corpus.documents),
            success=corpus.success_count,
            errors=corpus.error_count,
        )
        return corpus

    async def publish_vault(
        self,
        *,
        write: bool | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> CorpusResult:
        return await self.publish_folder(None, write=write, cancel_event=cancel_event)


__all__ = [
    "PublishOptions",
    "PublishResult",
    "CorpusResult",
    "Replacement",
    "ReferenceFailure",
    "Publisher",
    "apply_replacements",
]
