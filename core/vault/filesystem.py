"""Document store used by the publisher.

The publisher only needs the ``Vault`` protocol; ``FileSystemVault`` implements
it over a directory tree, the way a desktop vault lays out notes and
attachments. Paths crossing the boundary are vault-relative POSIX strings.
"""

from __future__ import annotations

import asyncio
import posixpath
from pathlib import Path
from typing import Protocol

from core.exceptions import ResolutionError
from core.vault.resolver import clean_link_target, normalize_path

DEFAULT_DOCUMENT_EXTENSIONS = (".md",)


class Vault(Protocol):
    async def read_bytes(self, path: str) -> bytes:
        ...

    async def read_text(self, path: str) -> str:
        ...

    async def write_text(self, path: str, text: str) -> None:
        ...

    def exists(self, path: str) -> bool:
        ...

    def list_documents(self, folder: str | None = None) -> list[str]:
        ...

    def resolve_link(self, link: str, source_path: str) -> str | None:
        ...

    def find_by_name(self, name: str) -> str | None:
        ...


class FileSystemVault:
    def __init__(
        self,
        root: Path,
        *,
        document_extensions: tuple[str, ...] = DEFAULT_DOCUMENT_EXTENSIONS,
    ) -> None:
        self.root = Path(root).resolve()
        self.document_extensions = tuple(ext.lower() for ext in document_extensions)

    def _absolute(self, path: str) -> Path:
        candidate = (self.root / normalize_path(path)).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise ResolutionError("Path escapes the vault", {"path": path}) from exc
        return candidate

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()

    async def read_bytes(self, path: str) -> bytes:
        target = self._absolute(path)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, target.read_bytes)

    async def read_text(self, path: str) -> str:
        target = self._absolute(path)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, lambda: target.read_text(encoding="utf-8"))

    async def write_text(self, path: str, text: str) -> None:
        target = self._absolute(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, _write)

    def exists(self, path: str) -> bool:
        try:
            return self._absolute(path).is_file()
        except ResolutionError:
            return False

    def _iter_files(self, folder: Path):
        for path in sorted(folder.rglob("*")):
            relative = path.relative_to(self.root).parts
            if any(part.startswith(".") for part in relative):
                continue
            if path.is_file():
                yield path

    def list_documents(self, folder: str | None = None) -> list[str]:
        base = self._absolute(folder) if folder else self.root
        if not base.is_dir():
            raise ResolutionError("Folder not found in vault", {"folder": folder or ""})
        return [
            self._relative(path)
            for path in self._iter_files(base)
            if path.suffix.lower() in self.document_extensions
        ]

    def resolve_link(self, link: str, source_path: str) -> str | None:
        """Link index lookup: relative to the source note, then the vault root."""
        target = clean_link_target(link)
        if not target:
            return None
        source_dir = posixpath.dirname(normalize_path(source_path))
        for candidate in (posixpath.join(source_dir, target), target):
            normalized = normalize_path(candidate)
            if normalized and self.exists(normalized):
                return normalized
        return None

    def find_by_name(self, name: str) -> str | None:
        """Full scan for the first file whose base name is ``name``."""
        wanted = posixpath.basename(clean_link_target(name))
        if not wanted:
            return None
        for path in self._iter_files(self.root):
            if path.name == wanted:
                return self._relative(path)
        return None


__all__ = ["Vault", "FileSystemVault", "DEFAULT_DOCUMENT_EXTENSIONS"]
