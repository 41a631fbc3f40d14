"""Fetch external images so they can be re-hosted on R2."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass
from urllib.parse import unquote, urlsplit

import httpx
from loguru import logger

from core.exceptions import DownloadError, SizeLimitError
from core.media import DEFAULT_MIME_TYPE, mime_type_for_name

DEFAULT_MAX_SIZE_BYTES = 50 * 1024 * 1024
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class DownloadedImage:
    data: bytes
    filename: str
    mime_type: str


def filename_from_url(url: str) -> str:
    name = posixpath.basename(unquote(urlsplit(url).path))
    return name or "image"


class ImageDownloader:
    def __init__(
        self,
        *,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.max_size_bytes = max_size_bytes
        self._timeout = timeout
        self._client = client

    async def fetch(self, url: str) -> DownloadedImage:
        if self._client is not None:
            return await self._fetch(self._client, url)
        async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
            return await self._fetch(client, url)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> DownloadedImage:
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                if not 200 <= response.status_code < 300:
                    raise DownloadError(
                        f"URL responded with HTTP {response.status_code}",
                        {"url": url, "status_code": str(response.status_code)},
                    )

                declared = self._declared_size(response)
                if declared is not None and declared > self.max_size_bytes:
                    raise SizeLimitError(
                        f"Image exceeds allowed size of {self.max_size_bytes} bytes",
                        {"url": url, "declared_size": str(declared)},
                    )

                buffer = bytearray()
                async for chunk in response.aiter_bytes():
                    buffer.extend(chunk)
                    if len(buffer) > self.max_size_bytes:
                        raise SizeLimitError(
                            f"Image exceeds allowed size of {self.max_size_bytes} bytes",
                            {"url": url},
                        )
                content_type = response.headers.get("content-type", "")
        except httpx.HTTPError as exc:
            raise DownloadError(f"Failed to download {url}: {exc}", {"url": url}) from exc

        filename = filename_from_url(url)
        mime_type = content_type.split(";", 1)[0].strip().lower()
        if not mime_type or mime_type == DEFAULT_MIME_TYPE:
            mime_type = mime_type_for_name(filename)
        logger.debug("Downloaded {url} ({size} bytes, {mime})", url=url, size=len(buffer), mime=mime_type)
        return DownloadedImage(data=bytes(buffer), filename=filename, mime_type=mime_type)

    @staticmethod
    def _declared_size(response: httpx.Response) -> int | None:
        raw = response.headers.get("content-length")
        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            return None


__all__ = ["DownloadedImage", "ImageDownloader", "filename_from_url", "DEFAULT_MAX_SIZE_BYTES"]
