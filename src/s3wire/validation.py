"""Input checks shared by the config model, resolver and dispatcher.

``validate_model`` keeps Pydantic construction expression-oriented by turning
its ``ValidationError`` into a ``Failure``. The predicates below follow the
bucket-naming and host rules that S3-compatible servers enforce.
"""

from __future__ import annotations

import ipaddress
import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from .result import Failure, Result, Success


TModel = TypeVar("TModel", bound=BaseModel)

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9.-]+[a-z0-9]$")
_IP_LIKE_RE = re.compile(r"[0-9]+\.[0-9]+\.[0-9]+\.[0-9]+")
_HOST_LABEL_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?$")

__all__: list[str] = [
    "validate_model",
    "is_valid_bucket_name",
    "is_valid_endpoint",
    "is_valid_port",
    "is_valid_object_name",
]


def validate_model(model_cls: type[TModel], **data: object) -> Result[TModel, ValidationError]:
    """Construct a Pydantic model and surface validation issues as a Result."""
    try:
        return Success(model_cls(**data))
    except ValidationError as exc:
        return Failure(exc)


def is_valid_bucket_name(bucket: str) -> bool:
    """Check a bucket name against the S3 naming rules."""
    if not 3 <= len(bucket) <= 63:
        return False
    if ".." in bucket:
        return False
    if _IP_LIKE_RE.search(bucket):
        return False
    return _BUCKET_RE.match(bucket) is not None


def is_valid_endpoint(endpoint: str) -> bool:
    """Accept an IP address or a DNS host name (no scheme, no path)."""
    try:
        ipaddress.ip_address(endpoint)
        return True
    except ValueError:
        pass

    if not endpoint or len(endpoint) > 253:
        return False
    if endpoint.startswith(("-", ".")) or endpoint.endswith(("-", ".")):
        return False
    return all(
        len(label) <= 63 and _HOST_LABEL_RE.match(label) is not None
        for label in endpoint.split(".")
    )


def is_valid_port(port: int) -> bool:
    # bool is an int subclass; True is not a port
    return isinstance(port, int) and not isinstance(port, bool) and 0 < port <= 65535


def is_valid_object_name(name: str) -> bool:
    return len(name) > 0
