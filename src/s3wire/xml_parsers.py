# src/s3wire/xml_parsers.py
"""
Generic XML primitives for S3 response bodies.

Resource-specific mappers live with the operations that need them; this module
only knows how to find the root element, read child text, escape values and
decode the two documents the dispatcher itself consumes: ``Error`` bodies and
``LocationConstraint`` answers.
"""

from __future__ import annotations

from typing import Mapping
from xml.etree import ElementTree as ET
from xml.sax.saxutils import escape

from .errors import ProtocolError, RemoteError
from .helpers import DEFAULT_REGION


def local_name(tag: str) -> str:
    """Strip an ``{namespace}`` prefix from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _load(text: str | bytes) -> ET.Element:
    try:
        return ET.fromstring(text)
    except ET.ParseError as exc:
        raise ProtocolError(f"invalid XML document: {exc}") from exc


def _fields(element: ET.Element) -> dict[str, str]:
    """Lower-cased child element names mapped to their stripped text."""
    return {
        local_name(child.tag).lower(): (child.text or "").strip() for child in element
    }


def parse_xml(text: str | bytes) -> ET.Element:
    """
    Parse a response document.

    A document whose root is ``Error`` is a server failure even when it came
    with a 2xx status (multipart completion does this), so it is raised as a
    ``RemoteError``.
    """
    root = _load(text)
    if local_name(root.tag) == "Error":
        fields = _fields(root)
        raise RemoteError(
            fields.get("code", "UnknownError"),
            fields.get("message", ""),
            request_id=fields.get("requestid"),
            host_id=fields.get("hostid"),
            region=fields.get("region"),
            bucket=fields.get("bucketname"),
            object_name=fields.get("key"),
            resource=fields.get("resource"),
            fields=fields,
        )
    return root


def require_root(root: ET.Element, tag: str) -> ET.Element:
    if local_name(root.tag) != tag:
        raise ProtocolError(f'Missing tag: "{tag}" (document root is "{local_name(root.tag)}")')
    return root


def find_text(element: ET.Element, name: str, default: str | None = None) -> str | None:
    """Text of the first direct child called ``name``, ignoring namespaces."""
    for child in element:
        if local_name(child.tag) == name:
            return child.text if child.text is not None else ""
    return default


def xml_escape(value: str) -> str:
    return escape(value, {'"': "&quot;", "'": "&apos;"})


def sanitize_etag(etag: str) -> str:
    """Strip the quoting servers wrap around ETag values."""
    for quote in ('"', "&quot;", "&#34;"):
        if etag.startswith(quote):
            etag = etag[len(quote) :]
        if etag.endswith(quote):
            etag = etag[: -len(quote)]
    return etag


_DEFAULT_ERRORS: dict[int, tuple[str, str]] = {
    301: ("MovedPermanently", "Moved Permanently"),
    307: ("TemporaryRedirect", "Are you using the correct endpoint URL?"),
    403: ("AccessDenied", "Valid and authorized credentials required"),
}


def _default_error(
    status: int, method: str, bucket: str | None, object_name: str | None
) -> tuple[str, str]:
    if status in _DEFAULT_ERRORS:
        return _DEFAULT_ERRORS[status]
    if status == 404:
        if object_name:
            return "NoSuchKey", "The specified key does not exist."
        if bucket:
            return "NoSuchBucket", "The specified bucket does not exist."
        return "NotFound", "Not Found"
    if status in (405, 501):
        return "MethodNotAllowed", f"{method} method not allowed"
    return "UnknownError", f"{status}"


def parse_error(
    body: bytes,
    status: int,
    headers: Mapping[str, str],
    *,
    method: str = "GET",
    bucket: str | None = None,
    object_name: str | None = None,
    resource: str | None = None,
) -> RemoteError:
    """
    Decode an error response into a ``RemoteError``.

    A status-derived default is used when the body is empty or not an
    ``Error`` document; fields present in the body override it. The request-id
    headers are merged in either way.
    """
    code, message = _default_error(status, method, bucket, object_name)
    fields: dict[str, str] = {}
    if body.strip():
        try:
            root = ET.fromstring(body)
        except ET.ParseError:
            root = None
        if root is not None and local_name(root.tag) == "Error":
            fields = _fields(root)

    header_region = headers.get("x-amz-bucket-region")
    return RemoteError(
        fields.get("code") or code,
        fields.get("message") or message,
        status_code=status,
        request_id=headers.get("x-amz-request-id") or fields.get("requestid"),
        host_id=headers.get("x-amz-id-2") or fields.get("hostid"),
        region=fields.get("region") or header_region,
        bucket=fields.get("bucketname") or bucket,
        object_name=fields.get("key") or object_name,
        resource=fields.get("resource") or resource,
        fields=fields,
    )


def parse_bucket_region(text: str | bytes, *, aws_host: bool = True) -> str:
    """
    Region named by a ``LocationConstraint`` document.

    An empty constraint means the default region; the legacy ``EU`` value
    means ``eu-west-1`` on AWS.
    """
    root = require_root(parse_xml(text), "LocationConstraint")
    region = (root.text or "").strip()
    if not region:
        return DEFAULT_REGION
    if region == "EU" and aws_host:
        return "eu-west-1"
    return region


__all__ = [
    "local_name",
    "parse_xml",
    "require_root",
    "find_text",
    "xml_escape",
    "sanitize_etag",
    "parse_error",
    "parse_bucket_region",
]
