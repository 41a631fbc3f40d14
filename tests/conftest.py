from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from core.storage.r2 import UploadTarget
from tests.utils_uploader import RecordingUploader


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2023, 6, 8, 10, 15, 30, 123000, tzinfo=timezone.utc)


@pytest.fixture
def upload_target() -> UploadTarget:
    return UploadTarget(
        access_key_id="AKIDEXAMPLE",
        secret_access_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        endpoint="https://acct.r2.cloudflarestorage.com",
        bucket_name="notes",
        path_template="/{year}/{mon}/{day}/{filename}",
    )


@pytest.fixture
def uploader() -> RecordingUploader:
    return RecordingUploader()


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    """A small vault with notes, attachments and a hidden folder."""
    root = tmp_path / "vault"
    (root / "attachments").mkdir(parents=True)
    (root / "notes" / "sub").mkdir(parents=True)
    (root / ".obsidian").mkdir()

    (root / "attachments" / "diagram.png").write_bytes(b"\x89PNG diagram")
    (root / "notes" / "local-shot.jpg").write_bytes(b"\xff\xd8 local")
    (root / "notes" / "clip.mp4").write_bytes(b"\x00\x00 video")
    (root / ".obsidian" / "config.md").write_text("hidden", encoding="utf-8")

    (root / "notes" / "first.md").write_text(
        "# First\n\n![[diagram.png]]\n\nText ![shot](local-shot.jpg)\n",
        encoding="utf-8",
    )
    (root / "notes" / "sub" / "second.md").write_text("No images here.\n", encoding="utf-8")
    (root / "readme.md").write_text("![remote](https://example.org/a.png)\n", encoding="utf-8")
    return root
