"""Detection and rewriting of image/video references in note text.

Two surface syntaxes are recognised::

    ![alt](target)      markdown image link
    ![[target]]         embedded (wiki) link

Only these forms are modelled; the rest of the markdown is opaque text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

from core.media import extension_of, is_media_name, is_video_asset

MARKDOWN_IMAGE_PATTERN = re.compile(r"!\[([^\]]*)\]\(([^)]+)\)")
WIKI_EMBED_PATTERN = re.compile(r"!\[\[([^\]]+)\]\]")

REMOTE_PREFIXES = ("http://", "https://", "data:")

_IMAGE_SUFFIX = re.compile(r"\.(png|jpg|jpeg|gif|svg|webp|bmp|tiff|tif)$", re.IGNORECASE)


@dataclass(frozen=True)
class ImageReference:
    original_text: str
    alt_text: str | None
    target: str
    start: int
    end: int
    syntax: Literal["markdown", "wiki"] = "markdown"

    @property
    def is_local(self) -> bool:
        return is_local_image(self.target)

    @property
    def is_video(self) -> bool:
        return is_video_asset(self.target)


def is_local_image(target: str) -> bool:
    return not target.startswith(REMOTE_PREFIXES)


def _is_media_embed(target: str) -> bool:
    # ![[Some note]] transcludes a note; only embeds of media files count.
    name = target.split("|", 1)[0].split("#", 1)[0].strip()
    return bool(extension_of(name)) and is_media_name(name)


def extract_image_tags(content: str) -> list[ImageReference]:
    """Return every image/video reference in ``content``.

    Markdown links come first in document order, followed by embedded links in
    document order. Embedded matches overlapping a markdown match are skipped.
    """
    references: list[ImageReference] = []
    for match in MARKDOWN_IMAGE_PATTERN.finditer(content):
        references.append(
            ImageReference(
                original_text=match.group(0),
                alt_text=match.group(1),
                target=match.group(2),
                start=match.start(),
                end=match.end(),
                syntax="markdown",
            )
        )

    spans = [(ref.start, ref.end) for ref in references]
    for match in WIKI_EMBED_PATTERN.finditer(content):
        if any(match.start() < end and start < match.end() for start, end in spans):
            continue
        target = match.group(1)
        if not _is_media_embed(target):
            continue
        references.append(
            ImageReference(
                original_text=match.group(0),
                alt_text=None,
                target=target,
                start=match.start(),
                end=match.end(),
                syntax="wiki",
            )
        )
    return references


def alt_text_from_target(target: str) -> str:
    """Readable alt text: image extension dropped, ``-`` and ``_`` as spaces.

    Wiki size (``|300``) and heading (``#part``) suffixes are not part of the name.
    """
    name = target.split("|", 1)[0].split("#", 1)[0].strip()
    return _IMAGE_SUFFIX.sub("", name).replace("-", " ").replace("_", " ")


def render_embed(url: str, alt_text: str = "", *, video: bool = False) -> str:
    if video:
        return f'<video controls src="{url}"></video>'
    return f"![{alt_text}]({url})"


def replace_image_tag(content: str, reference: ImageReference, new_url: str) -> str:
    """Replace exactly the span of ``reference`` with ``![alt](new_url)``."""
    new_tag = render_embed(new_url, reference.alt_text or "")
    return content[: reference.start] + new_tag + content[reference.end :]


__all__ = [
    "ImageReference",
    "MARKDOWN_IMAGE_PATTERN",
    "WIKI_EMBED_PATTERN",
    "is_local_image",
    "is_video_asset",
    "extract_image_tags",
    "alt_text_from_target",
    "render_embed",
    "replace_image_tag",
]
