import hashlib
from datetime import datetime, timezone

import pytest

from core.storage.signing import (
    Credentials,
    amz_timestamps,
    canonical_request,
    credential_scope,
    derive_signing_key,
    sign_request,
    string_to_sign,
)

CREDENTIALS = Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")
HOST = "acct.r2.cloudflarestorage.com"
NOW = datetime(2023, 6, 8, 10, 15, 30, tzinfo=timezone.utc)


def test_derive_signing_key_matches_published_vector():
    key = derive_signing_key(
        "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY", "20120215", region="us-east-1", service="iam"
    )
    assert key.hex() == "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"


def test_amz_timestamps_are_utc():
    assert amz_timestamps(NOW) == ("20230608", "20230608T101530Z")
    naive = datetime(2023, 6, 8, 10, 15, 30)
    assert amz_timestamps(naive) == ("20230608", "20230608T101530Z")


def test_credential_scope_uses_auto_region():
    assert credential_scope("20230608") == "20230608/auto/s3/aws4_request"


def test_canonical_request_layout():
    payload_hash = hashlib.sha256(b"abc").hexdigest()
    canonical = canonical_request("put", "notes/a.png", HOST, payload_hash, "20230608T101530Z")
    assert canonical.split("\n") == [
        "PUT",
        "/notes/a.png",
        "",
        f"host:{HOST}",
        f"x-amz-content-sha256:{payload_hash}",
        "x-amz-date:20230608T101530Z",
        "",
        "host;x-amz-content-sha256;x-amz-date",
        payload_hash,
    ]


def test_sign_request_headers():
    headers = sign_request("PUT", "notes/a.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)

    assert headers["x-amz-date"] == "20230608T101530Z"
    assert headers["x-amz-content-sha256"] == hashlib.sha256(b"abc").hexdigest()
    assert headers["Content-Type"] == "image/png"
    assert headers["Authorization"].startswith(
        "AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/20230608/auto/s3/aws4_request, "
        "SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature="
    )


def test_sign_request_is_deterministic():
    first = sign_request("PUT", "notes/a.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)
    second = sign_request("PUT", "notes/a.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)
    assert first == second


def test_changing_one_byte_changes_hash_and_signature():
    first = sign_request("PUT", "notes/a.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)
    second = sign_request("PUT", "notes/a.png", "image/png", b"abd", CREDENTIALS, HOST, now=NOW)
    assert first["x-amz-content-sha256"] != second["x-amz-content-sha256"]
    assert first["Authorization"] != second["Authorization"]


def test_changing_the_key_changes_signature():
    first = sign_request("PUT", "notes/a.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)
    second = sign_request("PUT", "notes/b.png", "image/png", b"abc", CREDENTIALS, HOST, now=NOW)
    assert first["Authorization"] != second["Authorization"]


def test_signature_matches_botocore():
    pytest.importorskip("botocore")
    from botocore.auth import SigV4Auth
    from botocore.awsrequest import AWSRequest
    from botocore.credentials import Credentials as BotoCredentials

    body = b"\x89PNG fake image bytes"
    key = "notes/2023/06/08/pic.png"
    headers = sign_request("PUT", key, "image/png", body, CREDENTIALS, HOST, now=NOW)

    request = AWSRequest(
        method="PUT",
        url=f"https://{HOST}/{key}",
        data=body,
        headers={
            "x-amz-content-sha256": headers["x-amz-content-sha256"],
            "x-amz-date": headers["x-amz-date"],
        },
    )
    request.context["timestamp"] = headers["x-amz-date"]
    auth = SigV4Auth(BotoCredentials(CREDENTIALS.access_key_id, CREDENTIALS.secret_access_key), "s3", "auto")

    boto_canonical = auth.canonical_request(request)
    date_stamp, amz_date = amz_timestamps(NOW)
    ours = canonical_request("PUT", key, HOST, headers["x-amz-content-sha256"], amz_date)
    assert boto_canonical == ours

    boto_string_to_sign = auth.string_to_sign(request, boto_canonical)
    assert boto_string_to_sign == string_to_sign(amz_date, credential_scope(date_stamp), ours)

    boto_signature = auth.signature(boto_string_to_sign, request)
    assert headers["Authorization"].endswith(f"Signature={boto_signature}")
