from __future__ import annotations

import posixpath
from pathlib import Path

from core.storage.naming import unique_file_name


class LocalStorage:
    """Stores pasted files inside the vault attachment folder ("paste locally")."""

    def __init__(self, root: Path, attachment_folder: str = "/") -> None:
        self.root = root
        self.attachment_folder = attachment_folder.strip().strip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _vault_path(self, name: str) -> str:
        if self.attachment_folder in ("", "."):
            return name
        return posixpath.normpath(posixpath.join(self.attachment_folder, name))

    def put_bytes(self, name: str, data: bytes) -> str:
        vault_path = self._vault_path(name)
        path = self.root / vault_path
        if path.exists():
            vault_path = self._vault_path(unique_file_name(name))
            path = self.root / vault_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return vault_path

    def embed(self, vault_path: str) -> str:
        return f"![[{posixpath.basename(vault_path)}]]"


__all__ = ["LocalStorage"]
