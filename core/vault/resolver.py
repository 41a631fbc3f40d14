"""Map reference targets found in notes to vault-relative paths."""

from __future__ import annotations

import posixpath
from typing import NamedTuple
from urllib.parse import unquote

from core.exceptions import NoReferencingContextError, ResolutionError


class ResolvedPath(NamedTuple):
    path: str
    name: str


def normalize_path(path: str) -> str:
    """Vault-style normalisation: POSIX separators, no leading or trailing ``/``."""
    cleaned = path.replace("\\", "/").strip()
    if not cleaned:
        return ""
    normalized = posixpath.normpath(cleaned).lstrip("/")
    return "" if normalized == "." else normalized


def clean_link_target(raw_target: str) -> str:
    """Strip what is not part of the file path: encoding, ``|size`` and ``#anchor``."""
    target = raw_target.strip()
    if target.startswith("<") and target.endswith(">"):
        target = target[1:-1]
    try:
        target = unquote(target, errors="strict")
    except UnicodeDecodeError:
        pass
    target = target.split("|", 1)[0]
    target = target.split("#", 1)[0]
    return target.strip()


def _is_explicit_relative(target: str) -> bool:
    return target.startswith("./") or target.startswith("../")


def resolve_reference_path(
    raw_target: str,
    document_path: str | None,
    attachment_folder: str = "/",
) -> ResolvedPath:
    """Resolve ``raw_target`` as referenced from ``document_path``.

    - a bare file name lives in ``attachment_folder``; a folder starting with
      ``.`` is relative to the referencing note
    - ``./`` and ``../`` targets are relative to the referencing note
    - anything else is already relative to the vault root
    """
    target = clean_link_target(raw_target)
    if not target:
        raise ResolutionError("Empty reference target", {"target": raw_target})

    if "/" not in target:
        folder = (attachment_folder or "").strip()
        joined = posixpath.join(folder, target) if folder else target
        if folder.startswith("."):
            joined = "./" + posixpath.normpath(joined)
        target = joined

    if _is_explicit_relative(target):
        if document_path is None:
            raise NoReferencingContextError(
                "Relative reference without a referencing document",
                {"target": raw_target},
            )
        base = posixpath.dirname(normalize_path(document_path))
        combined = posixpath.normpath(posixpath.join(base, target))
        if combined == ".." or combined.startswith("../"):
            raise ResolutionError("Reference points outside the vault", {"target": raw_target})
        path = normalize_path(combined)
    else:
        path = normalize_path(target)
        if path == ".." or path.startswith("../"):
            raise ResolutionError("Reference points outside the vault", {"target": raw_target})

    if not path:
        raise ResolutionError("Reference does not name a file", {"target": raw_target})
    return ResolvedPath(path=path, name=posixpath.basename(path))


__all__ = ["ResolvedPath", "normalize_path", "clean_link_target", "resolve_reference_path"]
