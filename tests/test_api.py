from __future__ import annotations

from pathlib import Path

import pytest

pytest.importorskip("fastapi")
pytest.importorskip("multipart")

from httpx import ASGITransport, AsyncClient

from core.exceptions import ConfigurationError, NotFoundError, SizeLimitError
from core.publish.publisher import Publisher
from core.vault.filesystem import FileSystemVault
from services.api.exception_handlers import status_code_for
from services.api.main import app
from core.settings import Settings
from core.storage.local import LocalStorage
from services.api.routes import get_app_settings, get_local_store, get_publisher, get_uploader
from tests.utils_uploader import RecordingUploader


@pytest.fixture
def api_uploader(vault_root: Path):
    uploader = RecordingUploader()
    app.dependency_overrides[get_uploader] = lambda: uploader
    app.dependency_overrides[get_publisher] = lambda: Publisher(uploader, FileSystemVault(vault_root))
    yield uploader
    app.dependency_overrides.clear()


def _client() -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest.mark.asyncio()
async def test_upload_endpoint(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post("/v1/upload", files={"file": ("shot.png", b"png-bytes", "image/png")})

    assert response.status_code == 200
    assert response.json() == {
        "url": "https://cdn.example.com/shot.png",
        "embed": "![](https://cdn.example.com/shot.png)",
        "mime_type": "image/png",
        "size": 9,
    }
    assert api_uploader.calls == [("shot.png", b"png-bytes", "image/png")]


@pytest.mark.asyncio()
async def test_upload_endpoint_guesses_video_type(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/upload",
            files={"file": ("clip.mp4", b"video", "application/octet-stream")},
        )

    payload = response.json()
    assert payload["mime_type"] == "video/mp4"
    assert payload["embed"] == '<video controls src="https://cdn.example.com/clip.mp4"></video>'


@pytest.mark.asyncio()
async def test_upload_endpoint_rejects_empty_file(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post("/v1/upload", files={"file": ("shot.png", b"", "image/png")})

    assert response.status_code == 400
    assert api_uploader.calls == []


@pytest.mark.asyncio()
async def test_paste_endpoint_uploads_and_stores_failures_locally(tmp_path: Path) -> None:
    uploader = RecordingUploader(fail_on={"fail.png"})
    store = LocalStorage(tmp_path / "vault", "attachments")
    app.dependency_overrides[get_uploader] = lambda: uploader
    app.dependency_overrides[get_local_store] = lambda: store
    app.dependency_overrides[get_app_settings] = lambda: Settings()
    try:
        async with _client() as client:
            response = await client.post(
                "/v1/paste",
                data={"text": "Note\n", "outcome": "upload"},
                files=[
                    ("files", ("shot.png", b"png", "image/png")),
                    ("files", ("fail.png", b"longer", "image/png")),
                    ("files", ("doc.pdf", b"%PDF", "application/pdf")),
                ],
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    payload = response.json()
    assert payload["text"] == (
        "Note\n![](https://cdn.example.com/shot.png)\n"
        "<!--Upload failed: connection reset while uploading fail.png-->\n![[fail.png]]\n"
    )
    assert payload["uploaded"] == ["https://cdn.example.com/shot.png"]
    assert payload["failed"] == ["fail.png"]
    assert payload["stored_locally"] == ["attachments/fail.png"]
    assert payload["confirm_before_upload"] is True
    assert (tmp_path / "vault" / "attachments" / "fail.png").read_bytes() == b"longer"


@pytest.mark.asyncio()
async def test_paste_endpoint_always_upload_reports_new_setting(tmp_path: Path) -> None:
    app.dependency_overrides[get_uploader] = lambda: RecordingUploader()
    app.dependency_overrides[get_local_store] = lambda: LocalStorage(tmp_path / "vault")
    app.dependency_overrides[get_app_settings] = lambda: Settings()
    try:
        async with _client() as client:
            response = await client.post(
                "/v1/paste",
                data={"outcome": "upload-and-remember"},
                files=[("files", ("shot.png", b"png", "image/png"))],
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["confirm_before_upload"] is False


@pytest.mark.asyncio()
async def test_upload_failure_maps_to_bad_gateway(vault_root: Path) -> None:
    app.dependency_overrides[get_uploader] = lambda: RecordingUploader(fail_on={"shot.png"})
    try:
        async with _client() as client:
            response = await client.post("/v1/upload", files={"file": ("shot.png", b"png", "image/png")})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert response.json()["error"] == "NetworkError"


@pytest.mark.asyncio()
async def test_unconfigured_uploader_maps_to_bad_request() -> None:
    def unconfigured():
        raise ConfigurationError("R2 uploader is not configured", {"missing": "bucket_name"})

    app.dependency_overrides[get_uploader] = unconfigured
    try:
        async with _client() as client:
            response = await client.post("/v1/upload", files={"file": ("shot.png", b"png", "image/png")})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 400
    assert response.json()["details"] == {"missing": "bucket_name"}


@pytest.mark.asyncio()
async def test_publish_text_endpoint(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post(
            "/v1/publish",
            json={"text": "![[diagram.png]] ![[missing.png]]", "document_path": "notes/first.md"},
        )

    assert response.status_code == 200
    payload = response.json()
    assert payload["text"] == "![diagram](https://cdn.example.com/diagram.png) ![[missing.png]]"
    assert payload["success_count"] == 1
    assert payload["error_count"] == 1
    assert payload["failures"][0]["target"] == "missing.png"
    assert payload["written"] is False


@pytest.mark.asyncio()
async def test_publish_document_endpoint(api_uploader: RecordingUploader, vault_root: Path) -> None:
    async with _client() as client:
        response = await client.post("/v1/publish/document", json={"path": "notes/first.md"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["written"] is True
    assert payload["success_count"] == 2
    assert "https://cdn.example.com/diagram.png" in (vault_root / "notes" / "first.md").read_text(encoding="utf-8")


@pytest.mark.asyncio()
async def test_publish_document_missing_note(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post("/v1/publish/document", json={"path": "notes/nope.md"})

    assert response.status_code == 404


@pytest.mark.asyncio()
async def test_publish_folder_inline(
    api_uploader: RecordingUploader, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("CELERY_BROKER_URL", raising=False)

    async with _client() as client:
        response = await client.post("/v1/publish/folder", json={"folder": "notes", "write": False})

    assert response.status_code == 200
    payload = response.json()
    assert payload["queued"] is False
    assert payload["result"]["documents"] == 2
    assert payload["result"]["success_count"] == 2
    assert payload["result"]["documents_written"] == 0


@pytest.mark.asyncio()
async def test_publish_folder_missing_folder(api_uploader: RecordingUploader) -> None:
    async with _client() as client:
        response = await client.post("/v1/publish/folder", json={"folder": "nope", "background": False})

    assert response.status_code == 404
    assert response.json()["error"] == "ResolutionError"


def test_status_codes():
    assert status_code_for(NotFoundError("x")) == 404
    assert status_code_for(SizeLimitError("x")) == 413
    assert status_code_for(ConfigurationError("x")) == 400
