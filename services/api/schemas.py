from __future__ import annotations

from pydantic import BaseModel, Field

from core.publish.publisher import CorpusResult, PublishResult


class UploadResponse(BaseModel):
    url: str
    embed: str
    mime_type: str
    size: int


class PasteResponse(BaseModel):
    text: str
    uploaded: list[str] = Field(default_factory=list)
    stored_locally: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    confirm_before_upload: bool


class PublishTextRequest(BaseModel):
    text: str
    document_path: str | None = Field(None, description="Vault path of the note the text belongs to")


class PublishDocumentRequest(BaseModel):
    path: str = Field(..., min_length=1)
    write: bool | None = Field(None, description="Override upload.update_original_document")


class PublishFolderRequest(BaseModel):
    folder: str | None = Field(None, description="Folder relative to the vault root; whole vault when empty")
    write: bool | None = None
    background: bool = Field(True, description="Queue on the worker when a broker is configured")


class FailureOut(BaseModel):
    target: str
    reason: str


class PublishResponse(BaseModel):
    text: str
    document_path: str | None = None
    found: int = 0
    success_count: int = 0
    error_count: int = 0
    skipped_remote: int = 0
    written: bool = False
    summary: str = ""
    failures: list[FailureOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PublishResult) -> "PublishResponse":
        return cls(
            text=result.text,
            document_path=result.document_path,
            found=result.found,
            success_count=result.success_count,
            error_count=result.error_count,
            skipped_remote=result.skipped_remote,
            written=result.written,
            summary=result.summary(),
            failures=[FailureOut(target=f.target, reason=f.reason) for f in result.failures],
        )


class CorpusResponse(BaseModel):
    documents: int
    documents_written: int
    success_count: int
    error_count: int
    cancelled: bool = False
    failures: dict[str, list[FailureOut]] = Field(default_factory=dict)

    @classmethod
    def from_result(cls, corpus: CorpusResult) -> "CorpusResponse":
        failures = {
            result.document_path or "": [FailureOut(target=f.target, reason=f.reason) for f in result.failures]
            for result in corpus.documents
            if result.failures
        }
        return cls(
            documents=len(corpus.documents),
            documents_written=corpus.documents_written,
            success_count=corpus.success_count,
            error_count=corpus.error_count,
            cancelled=corpus.cancelled,
            failures=failures,
        )


class PublishFolderResponse(BaseModel):
    queued: bool
    task_id: str | None = None
    result: CorpusResponse | None = None


__all__ = [
    "UploadResponse",
    "PasteResponse",
    "PublishTextRequest",
    "PublishDocumentRequest",
    "PublishFolderRequest",
    "FailureOut",
    "PublishResponse",
    "CorpusResponse",
    "PublishFolderResponse",
]
