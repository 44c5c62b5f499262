# src/s3wire/signer.py
"""
AWS Signature Version 4 request signing.

Every function here is pure: the same request, credentials, region and
timestamp always give the same signature. The signing key is derived from the
secret key through a chain of HMAC-SHA256 operations:
kSecret -> kDate -> kRegion -> kService -> kSigning.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime
from typing import Mapping

from .credentials import Credentials
from .errors import InvalidArgumentError
from .helpers import (
    UNSIGNED_PAYLOAD,
    QueryPairs,
    amz_date,
    date_stamp,
    uri_escape,
)
from .transport import HttpRequest


SIGN_V4_ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE = "s3"

PRESIGN_EXPIRY_MAX = 7 * 24 * 60 * 60

# Headers that proxies and HTTP stacks are free to rewrite
IGNORED_HEADERS = frozenset({"authorization", "content-length", "content-type", "user-agent"})


def _hmac(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def get_scope(timestamp: datetime, region: str, service: str = SERVICE) -> str:
    return f"{date_stamp(timestamp)}/{region}/{service}/aws4_request"


def get_signing_key(
    secret_key: str, timestamp: datetime, region: str, service: str = SERVICE
) -> bytes:
    k_date = _hmac(("AWS4" + secret_key).encode("utf-8"), date_stamp(timestamp))
    k_region = _hmac(k_date, region)
    k_service = _hmac(k_region, service)
    return _hmac(k_service, "aws4_request")


def get_signed_headers(headers: Mapping[str, str]) -> list[str]:
    """Sorted, lower-cased names of the headers covered by the signature."""
    return sorted({key.lower() for key in headers} - IGNORED_HEADERS)


def canonical_query_string(query: QueryPairs) -> str:
    """Escaped pairs sorted by escaped name, then escaped value."""
    escaped = sorted((uri_escape(key), uri_escape(value)) for key, value in query)
    return "&".join(f"{key}={value}" for key, value in escaped)


def canonical_request(
    method: str,
    path: str,
    query: QueryPairs,
    headers: Mapping[str, str],
    signed_headers: list[str],
    content_sha256: str,
) -> str:
    """
    Build the canonical request string.

    Format:
    HTTPMethod\\n
    CanonicalURI\\n
    CanonicalQueryString\\n
    CanonicalHeaders\\n
    SignedHeaders\\n
    HashedPayload

    ``path`` is the request path as sent, already resource-escaped.
    """
    lowered = {key.lower(): str(value) for key, value in headers.items()}
    canonical_headers = "".join(
        f"{name}:{' '.join(lowered[name].split())}\n" for name in signed_headers
    )
    return "\n".join(
        [
            method.upper(),
            path,
            canonical_query_string(query),
            canonical_headers,
            ";".join(signed_headers),
            content_sha256,
        ]
    )


def string_to_sign(canonical: str, timestamp: datetime, region: str) -> str:
    hashed = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return "\n".join([SIGN_V4_ALGORITHM, amz_date(timestamp), get_scope(timestamp, region), hashed])


def _require_signing_credentials(credentials: Credentials) -> None:
    if not credentials.access_key:
        raise InvalidArgumentError("credentials", "access key is required for signing")
    if not credentials.secret_key:
        raise InvalidArgumentError("credentials", "secret key is required for signing")


def sign_v4(
    request: HttpRequest,
    credentials: Credentials,
    region: str,
    timestamp: datetime,
    content_sha256: str,
) -> str:
    """
    Compute the ``Authorization`` header value for ``request``.

    The request headers must already contain ``host``, ``x-amz-date`` and
    ``x-amz-content-sha256``; every header outside ``IGNORED_HEADERS`` is signed.

    Returns:
        ``AWS4-HMAC-SHA256 Credential=<key>/<scope>, SignedHeaders=<names>, Signature=<hex>``
    """
    _require_signing_credentials(credentials)

    signed_headers = get_signed_headers(request.headers)
    canonical = canonical_request(
        request.method,
        request.path,
        request.query,
        request.headers,
        signed_headers,
        content_sha256,
    )
    signing_key = get_signing_key(credentials.secret_key, timestamp, region)
    signature = hmac.new(
        signing_key, string_to_sign(canonical, timestamp, region).encode("utf-8"), hashlib.sha256
    ).hexdigest()

    return (
        f"{SIGN_V4_ALGORITHM} Credential={credentials.access_key}/{get_scope(timestamp, region)}, "
        f"SignedHeaders={';'.join(signed_headers)}, Signature={signature}"
    )


def presign_v4(
    request: HttpRequest,
    credentials: Credentials,
    region: str,
    timestamp: datetime,
    expires: int,
) -> str:
    """
    Return a presigned URL for ``request`` valid for ``expires`` seconds.

    Only the ``host`` header is signed and the payload is left unsigned, so
    the URL can be used by any HTTP client.
    """
    _require_signing_credentials(credentials)
    if not 1 <= expires <= PRESIGN_EXPIRY_MAX:
        raise InvalidArgumentError(
            "expires", f"must be between 1 and {PRESIGN_EXPIRY_MAX} seconds, got {expires}"
        )

    host = request.headers.get("host", request.host)
    auth_query: list[tuple[str, str]] = [
        ("X-Amz-Algorithm", SIGN_V4_ALGORITHM),
        ("X-Amz-Credential", f"{credentials.access_key}/{get_scope(timestamp, region)}"),
        ("X-Amz-Date", amz_date(timestamp)),
        ("X-Amz-Expires", str(expires)),
        ("X-Amz-SignedHeaders", "host"),
    ]
    if credentials.session_token:
        auth_query.append(("X-Amz-Security-Token", credentials.session_token))
    query = tuple(sorted([*request.query, *auth_query]))

    canonical = canonical_request(
        request.method, request.path, query, {"host": host}, ["host"], UNSIGNED_PAYLOAD
    )
    signing_key = get_signing_key(credentials.secret_key, timestamp, region)
    signature = hmac.new(
        signing_key, string_to_sign(canonical, timestamp, region).encode("utf-8"), hashlib.sha256
    ).hexdigest()

    signed_query = canonical_query_string(query) + f"&X-Amz-Signature={signature}"
    return f"{request.protocol}://{host}{request.path}?{signed_query}"


__all__ = [
    "SIGN_V4_ALGORITHM",
    "IGNORED_HEADERS",
    "PRESIGN_EXPIRY_MAX",
    "get_scope",
    "get_signing_key",
    "get_signed_headers",
    "canonical_query_string",
    "canonical_request",
    "string_to_sign",
    "sign_v4",
    "presign_v4",
]
