"""AWS Signature Version 4 for single PUT requests to S3-compatible stores.

Only what a path-style ``PutObject`` against Cloudflare R2 needs: no query
string, three signed headers and a payload hash over the exact body bytes.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timezone
from typing import NamedTuple

ALGORITHM = "AWS4-HMAC-SHA256"
REGION = "auto"
SERVICE = "s3"
TERMINATOR = "aws4_request"
SIGNED_HEADERS = "host;x-amz-content-sha256;x-amz-date"


class Credentials(NamedTuple):
    access_key_id: str
    secret_access_key: str


def _hmac(key: bytes, message: str) -> bytes:
    return hmac.new(key, message.encode("utf-8"), hashlib.sha256).digest()


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def amz_timestamps(now: datetime) -> tuple[str, str]:
    """Return ``(date_stamp, amz_date)`` for ``now`` in UTC."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%d"), now.strftime("%Y%m%dT%H%M%SZ")


def credential_scope(date_stamp: str, region: str = REGION, service: str = SERVICE) -> str:
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def canonical_request(method: str, key: str, host: str, payload_hash: str, amz_date: str) -> str:
    """Build the canonical request; ``key`` must already be URI-encoded (``/`` kept)."""
    canonical_headers = (
        f"host:{host}\n"
        f"x-amz-content-sha256:{payload_hash}\n"
        f"x-amz-date:{amz_date}\n"
    )
    return "\n".join(
        [
            method.upper(),
            "/" + key.lstrip("/"),
            "",
            canonical_headers,
            SIGNED_HEADERS,
            payload_hash,
        ]
    )


def string_to_sign(amz_date: str, scope: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, amz_date, scope, sha256_hex(canonical.encode("utf-8"))])


def derive_signing_key(
    secret_access_key: str,
    date_stamp: str,
    region: str = REGION,
    service: str = SERVICE,
) -> bytes:
    k_date = _hmac(("AWS4" + secret_access_key).encode("utf-8"), date_stamp)
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, TERMINATOR)


def sign_request(
    method: str,
    key: str,
    content_type: str,
    body: bytes,
    credentials: Credentials,
    host: str,
    *,
    now: datetime | None = None,
) -> dict[str, str]:
    """Return the headers that authorize ``method`` on ``/{key}`` at ``host``.

    ``body`` must be the exact buffer that will be transmitted; any re-encoding
    by the transport invalidates the payload hash and the store answers 403.
    """
    date_stamp, amz_date = amz_timestamps(now or datetime.now(timezone.utc))
    payload_hash = sha256_hex(body)
    scope = credential_scope(date_stamp)

    canonical = canonical_request(method, key, host, payload_hash, amz_date)
    to_sign = string_to_sign(amz_date, scope, canonical)
    signing_key = derive_signing_key(credentials.secret_access_key, date_stamp)
    signature = hmac.new(signing_key, to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credentials.access_key_id}/{scope}, "
        f"SignedHeaders={SIGNED_HEADERS}, Signature={signature}"
    )
    return {
        "Authorization": authorization,
        "x-amz-content-sha256": payload_hash,
        "x-amz-date": amz_date,
        "Content-Type": content_type,
    }


__all__ = [
    "Credentials",
    "REGION",
    "SERVICE",
    "SIGNED_HEADERS",
    "amz_timestamps",
    "credential_scope",
    "canonical_request",
    "string_to_sign",
    "derive_signing_key",
    "sign_request",
]
