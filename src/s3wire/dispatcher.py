# src/s3wire/dispatcher.py
"""
Request dispatcher: turns a logical S3 call into a signed HTTP exchange.

One ``RequestDispatcher`` owns the client configuration, the transport, the
credential provider and the bucket region cache. Every call goes through
``execute``:

1. resolve the bucket region (configured, cached, or discovered),
2. address the request (virtual-hosted or path-style),
3. refresh credentials and sign unless anonymous,
4. stream the body through a ``BodyPipe``,
5. accept the response or turn it into a ``RemoteError``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import AsyncIterable, Callable, Literal, Mapping, Sequence, TextIO, overload

from .trace import Tracer
from .config import ClientConfig
from .credentials import ANONYMOUS, CredentialProvider, Credentials
from .endpoints import is_aws_default_endpoint, resolve
from .errors import (
    ConfigurationError,
    CredentialsError,
    InvalidArgumentError,
    RemoteError,
    S3WireError,
    StreamError,
)
from .eventstream import SelectResults, read_select_response
from .helpers import (
    DEFAULT_REGION,
    EMPTY_SHA256,
    UNSIGNED_PAYLOAD,
    QueryPairs,
    amz_date,
    lower_headers,
    normalize_query,
    sha256_hex,
)
from .region_cache import RegionCache
from .result import Failure, Success
from .signer import PRESIGN_EXPIRY_MAX, presign_v4, sign_v4
from .streams import BodyPipe, bytes_stream, drain, read_all
from .transport import HttpRequest, Transport, TransportResponse
from .validation import is_valid_bucket_name, is_valid_object_name
from .xml_parsers import parse_bucket_region, parse_error, parse_xml


_logger = logging.getLogger(__name__)

USER_AGENT = "s3wire/0.1.0"

_DEFAULT_PORTS = {"http": 80, "https": 443}
_METHODS_WITH_LENGTH = frozenset({"POST", "PUT", "DELETE"})
_HEX_DIGITS = frozenset("0123456789abcdef")


@dataclass(frozen=True)
class RequestDescriptor:
    """Logical description of one call, before addressing and signing.

    ``query`` accepts a mapping or ``(key, value)`` pairs and is stored as
    sorted pairs; an empty value is a bare key (``?location``). Header names
    are stored lower-cased.
    """

    method: str
    bucket: str | None = None
    object_name: str | None = None
    region: str | None = None
    query: QueryPairs | Mapping[str, str] = ()
    headers: Mapping[str, str] = field(default_factory=dict)
    body_length: int = 0
    path_style: bool = False

    def __post_init__(self) -> None:
        if not isinstance(self.method, str) or not self.method:
            raise InvalidArgumentError("method", "must be a non-empty string")
        if isinstance(self.body_length, bool) or not isinstance(self.body_length, int):
            raise InvalidArgumentError("body_length", "must be an integer")
        if self.body_length < 0:
            raise InvalidArgumentError("body_length", f"must not be negative, got {self.body_length}")
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "query", normalize_query(self.query))
        object.__setattr__(self, "headers", lower_headers(self.headers))

    @property
    def query_pairs(self) -> QueryPairs:
        return normalize_query(self.query)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _is_sha256_hex(value: str) -> bool:
    return len(value) == 64 and set(value) <= _HEX_DIGITS


def _check_arguments(
    body: AsyncIterable[bytes] | None,
    sha256: object,
    status_codes: Sequence[int],
    region: object,
) -> None:
    if isinstance(status_codes, (str, bytes)) or not isinstance(status_codes, Sequence):
        raise InvalidArgumentError("status_codes", "must be a sequence of integers")
    if not status_codes:
        raise InvalidArgumentError("status_codes", "must not be empty")
    for code in status_codes:
        if isinstance(code, bool) or not isinstance(code, int):
            raise InvalidArgumentError("status_codes", f"{code!r} is not an integer")
    if region is not None and not isinstance(region, str):
        raise InvalidArgumentError("region", "must be a string")
    if body is not None and not hasattr(body, "__aiter__"):
        raise InvalidArgumentError("body", "must be an async iterable of bytes")
    if not isinstance(sha256, str):
        raise InvalidArgumentError("sha256", "must be a string")
    if sha256 and sha256 != UNSIGNED_PAYLOAD and not _is_sha256_hex(sha256):
        raise InvalidArgumentError("sha256", f"not a hex SHA-256 digest: {sha256!r}")


class RequestDispatcher:
    """
    Signed request execution against one S3-compatible endpoint.

    Usage:
        async with AiohttpTransport() as transport:
            dispatcher = RequestDispatcher(config, transport, EnvironmentProvider())
            response = await dispatcher.execute(
                RequestDescriptor("GET", bucket="photos", object_name="cat.png"),
                raw=True,
            )
    """

    def __init__(
        self,
        config: ClientConfig | Mapping[str, object],
        transport: Transport,
        provider: CredentialProvider | None = None,
        *,
        region_cache: RegionCache | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not isinstance(config, ClientConfig):
            match ClientConfig.create(**dict(config)):
                case Success(validated):
                    config = validated
                case Failure(error):
                    raise ConfigurationError(f"Invalid client configuration: {error}") from error
        self._config = config
        self._transport = transport
        self._provider = provider
        self.region_cache = region_cache if region_cache is not None else RegionCache()
        self._clock = clock or _utcnow
        self._tracer = Tracer()
        self._trace = config.trace

    @property
    def config(self) -> ClientConfig:
        return self._config

    # ------------------------------------------------------------------ trace

    def trace_on(self, stream: TextIO) -> None:
        self._tracer.trace_on(stream)
        self._trace = True

    def trace_off(self) -> None:
        self._tracer.trace_off()
        self._trace = self._config.trace

    # ------------------------------------------------------------ credentials

    async def _credentials(self) -> Credentials:
        if self._provider is None:
            return ANONYMOUS
        try:
            return await self._provider.retrieve()
        except CredentialsError:
            raise
        except Exception as exc:
            raise CredentialsError(f"Credential provider failed: {exc}") from exc

    # ----------------------------------------------------------------- region

    async def get_bucket_region(self, bucket: str) -> str:
        """
        Region of ``bucket``: configured, cached, or discovered with ``GET ?location``.

        Discovery is signed for the default region. A server that names the
        true region in an ``AuthorizationHeaderMalformed`` error gets exactly
        one retry signed for that region.
        """
        if self._config.region:
            return self._config.region
        if not is_valid_bucket_name(bucket):
            raise InvalidArgumentError("bucket", f"invalid bucket name: {bucket!r}")

        cached = self.region_cache.get(bucket)
        if cached is not None:
            return cached

        _logger.debug("Discovering region for bucket %s", bucket)
        descriptor = RequestDescriptor("GET", bucket=bucket, query=(("location", ""),), path_style=True)
        try:
            text = await self.execute_xml(descriptor, region=DEFAULT_REGION)
        except RemoteError as err:
            if err.code == "AccessDenied" and not err.region:
                _logger.debug("Location of %s is access-denied; assuming %s", bucket, DEFAULT_REGION)
                return DEFAULT_REGION
            if err.code != "AuthorizationHeaderMalformed" or not err.region:
                raise
            _logger.debug("Retrying location of %s signed for %s", bucket, err.region)
            text = await self.execute_xml(descriptor, region=err.region)

        region = parse_bucket_region(text, aws_host=is_aws_default_endpoint(self._config.endpoint))
        self.region_cache.set(bucket, region)
        return region

    async def _request_region(self, descriptor: RequestDescriptor) -> str:
        if descriptor.region:
            return descriptor.region
        if descriptor.bucket:
            return await self.get_bucket_region(descriptor.bucket)
        return self._config.region or DEFAULT_REGION

    # ------------------------------------------------------------- addressing

    def _address(self, descriptor: RequestDescriptor, region: str) -> tuple[str, str, str]:
        """Returns the connect host, the ``host`` header value and the path."""
        if descriptor.bucket is not None and not is_valid_bucket_name(descriptor.bucket):
            raise InvalidArgumentError("bucket", f"invalid bucket name: {descriptor.bucket!r}")
        if descriptor.object_name is not None and not is_valid_object_name(descriptor.object_name):
            raise InvalidArgumentError("object_name", "must not be empty")
        endpoint = resolve(
            self._config.endpoint,
            self._config.protocol,
            descriptor.bucket,
            descriptor.object_name,
            path_style=descriptor.path_style or self._config.path_style,
            region=region,
            accelerate_endpoint=self._config.accelerate_endpoint,
        )
        port = self._config.port
        host_header = endpoint.host
        if port is not None and port != _DEFAULT_PORTS[self._config.protocol]:
            host_header = f"{endpoint.host}:{port}"
        return endpoint.host, host_header, endpoint.path

    def _payload_hash(self, sha256: str, body_length: int) -> str:
        if sha256:
            return sha256
        if self._config.use_ssl:
            return UNSIGNED_PAYLOAD
        if body_length == 0:
            return EMPTY_SHA256
        raise InvalidArgumentError(
            "sha256", "a payload hash is required for signed requests over plain HTTP"
        )

    def _build_request(
        self,
        descriptor: RequestDescriptor,
        region: str,
        credentials: Credentials,
        sha256: str,
    ) -> HttpRequest:
        host, host_header, path = self._address(descriptor, region)

        headers = dict(descriptor.headers)
        if descriptor.method in _METHODS_WITH_LENGTH:
            headers["content-length"] = str(descriptor.body_length)
        headers["host"] = host_header
        headers.setdefault("user-agent", USER_AGENT)

        timestamp = self._clock()
        content_sha256 = ""
        if not credentials.is_anonymous:
            content_sha256 = self._payload_hash(sha256, descriptor.body_length)
            headers["x-amz-date"] = amz_date(timestamp)
            headers["x-amz-content-sha256"] = content_sha256
            if credentials.session_token:
                headers["x-amz-security-token"] = credentials.session_token

        request = HttpRequest(
            method=descriptor.method,
            protocol=self._config.protocol,
            host=host,
            port=self._config.port,
            path=path,
            query=descriptor.query_pairs,
            headers=headers,
        )
        if credentials.is_anonymous:
            return request

        authorization = sign_v4(request, credentials, region, timestamp, content_sha256)
        return replace(request, headers={**headers, "authorization": authorization})

    # -------------------------------------------------------------- execution

    @overload
    async def execute(
        self,
        descriptor: RequestDescriptor,
        body: AsyncIterable[bytes] | None = ...,
        sha256: str = ...,
        status_codes: Sequence[int] = ...,
        region: str | None = ...,
        raw: Literal[False] = ...,
    ) -> None: ...

    @overload
    async def execute(
        self,
        descriptor: RequestDescriptor,
        body: AsyncIterable[bytes] | None = ...,
        sha256: str = ...,
        status_codes: Sequence[int] = ...,
        region: str | None = ...,
        *,
        raw: Literal[True],
    ) -> TransportResponse: ...

    async def execute(
        self,
        descriptor: RequestDescriptor,
        body: AsyncIterable[bytes] | None = None,
        sha256: str = "",
        status_codes: Sequence[int] = (200,),
        region: str | None = None,
        raw: bool = False,
    ) -> TransportResponse | None:
        """
        Send one request and validate its status.

        Args:
            descriptor: Logical request
            body: Request body, streamed without buffering
            sha256: Hex SHA-256 of the body; empty lets the dispatcher pick
                ``UNSIGNED-PAYLOAD`` over https
            status_codes: Acceptable response statuses
            region: Signing region; resolved from the bucket when omitted
            raw: Return the unread response instead of draining it

        Returns:
            The response when ``raw`` is true, otherwise None.

        Raises:
            InvalidArgumentError: malformed arguments
            CredentialsError: the credential provider failed
            StreamError: transport or request body failure
            RemoteError: the server answered with an unacceptable status
        """
        _check_arguments(body, sha256, status_codes, region)
        if region is None:
            region = await self._request_region(descriptor)

        credentials = await self._credentials()
        request = self._build_request(descriptor, region, credentials, sha256)
        if self._trace:
            self._tracer.log_request(request)

        pipe: BodyPipe | None = None
        if body is not None:
            expected = descriptor.body_length if descriptor.method in _METHODS_WITH_LENGTH else None
            pipe = BodyPipe(body, expected)

        try:
            response = await self._transport.send(request, pipe)
        except asyncio.CancelledError:
            if pipe is not None:
                await pipe.cancel()
            raise
        except Exception as exc:
            if pipe is not None:
                await pipe.cancel()
                pipe.raise_for_failure()
            if isinstance(exc, S3WireError):
                raise
            raise StreamError(f"{request.method} {request.host}: {exc}", exc) from exc

        if pipe is not None and pipe.failure is not None:
            await response.release()
            pipe.raise_for_failure()

        if response.status not in status_codes:
            if descriptor.bucket:
                self.region_cache.invalidate(descriptor.bucket)
            try:
                error_body = b"" if request.method == "HEAD" else await read_all(response.body)
            finally:
                await response.release()
            if self._trace:
                self._tracer.log_response(response.status, response.headers, error_body)
            raise parse_error(
                error_body,
                response.status,
                response.headers,
                method=request.method,
                bucket=descriptor.bucket,
                object_name=descriptor.object_name,
                resource=request.path,
            )

        if self._trace:
            self._tracer.log_response(response.status, response.headers)
        if raw:
            return response

        try:
            await drain(response.body)
        finally:
            await response.release()
        return None

    @overload
    async def execute_bytes(
        self,
        descriptor: RequestDescriptor,
        payload: bytes = ...,
        status_codes: Sequence[int] = ...,
        region: str | None = ...,
        raw: Literal[False] = ...,
    ) -> None: ...

    @overload
    async def execute_bytes(
        self,
        descriptor: RequestDescriptor,
        payload: bytes = ...,
        status_codes: Sequence[int] = ...,
        region: str | None = ...,
        *,
        raw: Literal[True],
    ) -> TransportResponse: ...

    async def execute_bytes(
        self,
        descriptor: RequestDescriptor,
        payload: bytes = b"",
        status_codes: Sequence[int] = (200,),
        region: str | None = None,
        raw: bool = False,
    ) -> TransportResponse | None:
        """``execute`` for an in-memory body; hashes it when the connection is plain HTTP."""
        if not isinstance(payload, (bytes, bytearray)):
            raise InvalidArgumentError("payload", "must be bytes")
        payload = bytes(payload)
        descriptor = replace(descriptor, body_length=len(payload))
        sha256 = "" if self._config.use_ssl else sha256_hex(payload)
        body = bytes_stream(payload) if payload else None
        if raw:
            return await self.execute(descriptor, body, sha256, status_codes, region, raw=True)
        return await self.execute(descriptor, body, sha256, status_codes, region)

    async def execute_xml(
        self,
        descriptor: RequestDescriptor,
        payload: bytes = b"",
        status_codes: Sequence[int] = (200,),
        region: str | None = None,
    ) -> str:
        """Run a request whose answer is an XML document and return its text.

        A 2xx answer whose root element is ``Error`` raises ``RemoteError``.
        """
        response = await self.execute_bytes(descriptor, payload, status_codes, region, raw=True)
        try:
            body = await read_all(response.body)
        finally:
            await response.release()
        try:
            parse_xml(body)
        except RemoteError as err:
            err.status_code = response.status
            err.bucket = err.bucket or descriptor.bucket
            err.object_name = err.object_name or descriptor.object_name
            raise
        return body.decode("utf-8")

    async def select(
        self,
        descriptor: RequestDescriptor,
        payload: bytes,
        region: str | None = None,
    ) -> SelectResults:
        """POST a SelectObjectContent request and decode the event stream it returns."""
        query = dict(descriptor.query_pairs)
        query.setdefault("select", "")
        query.setdefault("select-type", "2")
        descriptor = replace(descriptor, method="POST", query=query)
        response = await self.execute_bytes(descriptor, payload, (200,), region, raw=True)
        try:
            return await read_select_response(response.body, response)
        finally:
            await response.release()

    async def presigned_url(
        self,
        method: str,
        bucket: str,
        object_name: str | None = None,
        expires: int = PRESIGN_EXPIRY_MAX,
        query: Mapping[str, str] | QueryPairs | None = None,
        request_date: datetime | None = None,
    ) -> str:
        """Presigned URL for ``method`` on ``bucket``/``object_name``, valid ``expires`` seconds."""
        credentials = await self._credentials()
        if credentials.is_anonymous:
            raise InvalidArgumentError("credentials", "presigned URLs cannot be anonymous")
        region = await self.get_bucket_region(bucket)
        descriptor = RequestDescriptor(
            method, bucket=bucket, object_name=object_name, query=query or ()
        )
        host, host_header, path = self._address(descriptor, region)
        request = HttpRequest(
            method=descriptor.method,
            protocol=self._config.protocol,
            host=host,
            port=self._config.port,
            path=path,
            query=descriptor.query_pairs,
            headers={"host": host_header},
        )
        return presign_v4(request, credentials, region, request_date or self._clock(), expires)


__all__ = ["USER_AGENT", "RequestDescriptor", "RequestDispatcher"]
