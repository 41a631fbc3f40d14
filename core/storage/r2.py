"""Direct uploader for Cloudflare R2 (and other path-style S3 stores)."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote, urlsplit

import httpx
from loguru import logger

from core.exceptions import ConfigurationError, HttpStatusError, NetworkError, ResponseShapeError
from core.storage.naming import generate_key
from core.storage.signing import Credentials, sign_request

DEFAULT_TIMEOUT_SECONDS = 30.0

_SCHEME_HOST = re.compile(r"https?://([^/]+)")


@dataclass(frozen=True)
class UploadTarget:
    access_key_id: str
    secret_access_key: str
    endpoint: str
    bucket_name: str
    path_template: str = ""
    custom_domain_name: str = ""

    @property
    def missing_fields(self) -> list[str]:
        required = {
            "access_key_id": self.access_key_id,
            "secret_access_key": self.secret_access_key,
            "endpoint": self.endpoint,
            "bucket_name": self.bucket_name,
        }
        return [name for name, value in required.items() if not (value or "").strip()]

    @property
    def is_configured(self) -> bool:
        return not self.missing_fields

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.access_key_id, self.secret_access_key)


def customize_domain_name(url: str, custom_domain_name: str) -> str:
    """Point ``url`` at ``custom_domain_name``.

    A ``scheme://host`` prefix is replaced by ``https://{domain}``; a bare path
    is prefixed with ``https://{domain}/``. An empty domain leaves ``url`` as is.
    """
    domain = (custom_domain_name or "").replace("https://", "").replace("http://", "").strip().rstrip("/")
    if not domain:
        return url
    if _SCHEME_HOST.match(url):
        return _SCHEME_HOST.sub(f"https://{domain}", url, count=1)
    return f"https://{domain}/{url.lstrip('/')}"


class R2Uploader:
    """Uploads bytes with a SigV4-signed PUT and returns the public URL.

    The uploader is immutable: build a new one when the target changes.
    """

    def __init__(
        self,
        target: UploadTarget,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        if not target.is_configured:
            raise ConfigurationError(
                "R2 uploader is not configured",
                {"missing": ", ".join(target.missing_fields)},
            )
        self.target = target
        self._client = client
        self._timeout = timeout
        parsed = urlsplit(target.endpoint.strip().rstrip("/"))
        if not parsed.scheme or not parsed.netloc:
            raise ConfigurationError("R2 endpoint must be an absolute URL", {"endpoint": target.endpoint})
        self._base_url = f"{parsed.scheme}://{parsed.netloc}"
        self._base_path = parsed.path.strip("/")
        self._host = parsed.netloc

    def object_key(self, filename: str, *, now: datetime | None = None) -> str:
        key = generate_key(self.target.path_template, filename, now=now).lstrip("/")
        if not key:
            raise ConfigurationError(
                "Path template produced an empty object key",
                {"path_template": self.target.path_template},
            )
        return key

    def object_url(self, key: str) -> tuple[str, str]:
        """Return ``(signed_path, url)`` for ``key`` in the configured bucket."""
        parts = [self._base_path, self.target.bucket_name, key]
        path = quote("/".join(part for part in parts if part), safe="/")
        return path, f"{self._base_url}/{path}"

    def public_url(self, url: str) -> str:
        prefix = "/".join(p for p in [self._base_path, self.target.bucket_name] if p)
        prefix = f"{self._base_url}/{quote(prefix, safe='/')}/"
        dst = url[len(prefix):] if url.startswith(prefix) else ""
        if not dst:
            raise ResponseShapeError("Could not extract file path from URL", {"url": url})
        if self.target.custom_domain_name.strip():
            return customize_domain_name(dst, self.target.custom_domain_name)
        return url

    async def upload(self, data: bytes, filename: str, mime_type: str) -> str:
        key = self.object_key(filename)
        signed_path, url = self.object_url(key)
        headers = sign_request("PUT", signed_path, mime_type, data, self.target.credentials, self._host)

        logger.info("Uploading {filename} ({size} bytes) to {key}", filename=filename, size=len(data), key=key)
        if self._client is not None:
            response = await self._put(self._client, url, data, headers)
        else:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await self._put(client, url, data, headers)

        if not 200 <= response.status_code < 300:
            raise HttpStatusError(
                f"Upload failed: {response.status_code} {response.reason_phrase}",
                response.status_code,
                {"key": key, "body": response.text[:500]},
            )

        public = self.public_url(url)
        logger.info("Uploaded {filename} -> {url}", filename=filename, url=public)
        return public

    async def _put(
        self,
        client: httpx.AsyncClient,
        url: str,
        data: bytes,
        headers: dict[str, str],
    ) -> httpx.Response:
        try:
            return await client.put(url, content=data, headers=headers)
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error during upload: {exc}", {"url": url}) from exc


__all__ = ["UploadTarget", "R2Uploader", "customize_domain_name"]
