# src/s3wire/__init__.py
"""
Async client core for S3-compatible object storage.

Signs requests with AWS Signature Version 4, resolves virtual-hosted or
path-style addresses, discovers and caches bucket regions, streams request
and response bodies, plans multipart byte ranges, and decodes the binary
event stream returned by SelectObjectContent.
"""

from __future__ import annotations

from .config import ClientConfig
from .credentials import (
    ANONYMOUS,
    AioBoto3Provider,
    CredentialProvider,
    Credentials,
    EnvironmentProvider,
    StaticProvider,
)
from .dispatcher import RequestDescriptor, RequestDispatcher
from .errors import (
    ChecksumMismatchError,
    ConfigurationError,
    CredentialsError,
    InvalidArgumentError,
    ProtocolError,
    RemoteError,
    S3WireError,
    StreamError,
)
from .eventstream import SelectResults, decode_select_response, read_select_response
from .multipart import ByteRange, PartPlan, even_split, part_size_for_upload, parts_required, split_ranges
from .operations import S3Operations
from .region_cache import RegionCache
from .result import Failure, Result, Success
from .transport import AiohttpTransport, HttpRequest, Transport, TransportResponse


__version__ = "0.1.0"

__all__ = [
    # Configuration
    "ClientConfig",
    # Credentials
    "Credentials",
    "ANONYMOUS",
    "CredentialProvider",
    "StaticProvider",
    "EnvironmentProvider",
    "AioBoto3Provider",
    # Dispatch
    "RequestDescriptor",
    "RequestDispatcher",
    "RegionCache",
    "S3Operations",
    # Transport
    "AiohttpTransport",
    "HttpRequest",
    "Transport",
    "TransportResponse",
    # Multipart
    "ByteRange",
    "PartPlan",
    "part_size_for_upload",
    "parts_required",
    "split_ranges",
    "even_split",
    # Event stream
    "SelectResults",
    "decode_select_response",
    "read_select_response",
    # Errors
    "S3WireError",
    "ConfigurationError",
    "InvalidArgumentError",
    "CredentialsError",
    "ProtocolError",
    "ChecksumMismatchError",
    "StreamError",
    "RemoteError",
    # Result
    "Result",
    "Success",
    "Failure",
]
