"""Escaping, hashing and timestamp helpers shared by the signer and resolver."""

from __future__ import annotations

import hashlib
from datetime import UTC, datetime
from typing import Iterable, Mapping
from urllib.parse import quote


UNSIGNED_PAYLOAD = "UNSIGNED-PAYLOAD"
EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()
DEFAULT_REGION = "us-east-1"

# quote() already leaves ALPHA / DIGIT / "-._~" alone
_UNRESERVED_SAFE = ""

QueryPairs = tuple[tuple[str, str], ...]


def uri_escape(value: str) -> str:
    """Percent-encode every byte except the unreserved characters."""
    return quote(value, safe=_UNRESERVED_SAFE)


def uri_resource_escape(value: str) -> str:
    """Like ``uri_escape`` but keeps ``/`` as a path separator."""
    return quote(value, safe="/")


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def to_utc(timestamp: datetime) -> datetime:
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=UTC)
    return timestamp.astimezone(UTC)


def amz_date(timestamp: datetime) -> str:
    """``YYYYMMDDTHHMMSSZ``"""
    return to_utc(timestamp).strftime("%Y%m%dT%H%M%SZ")


def date_stamp(timestamp: datetime) -> str:
    """``YYYYMMDD``"""
    return to_utc(timestamp).strftime("%Y%m%d")


def normalize_query(query: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> QueryPairs:
    """Turn a mapping or pair sequence into sorted ``(key, value)`` pairs."""
    if query is None:
        return ()
    pairs = query.items() if isinstance(query, Mapping) else query
    return tuple(sorted((str(key), str(value)) for key, value in pairs))


def encode_query(pairs: QueryPairs) -> str:
    """Render pairs for the request URL; a bare key is written without ``=``."""
    return "&".join(
        uri_escape(key) if value == "" else f"{uri_escape(key)}={uri_escape(value)}"
        for key, value in pairs
    )


def lower_headers(headers: Mapping[str, str]) -> dict[str, str]:
    return {key.lower(): str(value) for key, value in headers.items()}


__all__ = [
    "UNSIGNED_PAYLOAD",
    "EMPTY_SHA256",
    "DEFAULT_REGION",
    "QueryPairs",
    "uri_escape",
    "uri_resource_escape",
    "sha256_hex",
    "to_utc",
    "amz_date",
    "date_stamp",
    "normalize_query",
    "encode_query",
    "lower_headers",
]
