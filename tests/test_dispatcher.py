# tests/test_dispatcher.py
"""Tests for request dispatch, region discovery and failure handling."""

from __future__ import annotations

import asyncio
import io
from datetime import datetime
from typing import AsyncIterable, AsyncIterator, Callable
from urllib.parse import parse_qs, urlsplit

import pytest

from s3wire.config import ClientConfig
from s3wire.credentials import Credentials, StaticProvider
from s3wire.dispatcher import USER_AGENT, RequestDescriptor, RequestDispatcher
from s3wire.errors import (
    ConfigurationError,
    CredentialsError,
    InvalidArgumentError,
    RemoteError,
    StreamError,
)
from s3wire.helpers import EMPTY_SHA256, UNSIGNED_PAYLOAD, sha256_hex
from s3wire.region_cache import RegionCache
from s3wire.transport import HttpRequest, TransportResponse
from tests.helpers import (
    ACCESS_KEY,
    SECRET_KEY,
    ScriptedResponse,
    ScriptedTransport,
    end_frame,
    error_body,
    location_body,
    records_frame,
    stats_frame,
)


Clock = Callable[[], datetime]


def _dispatcher(
    config: ClientConfig,
    transport: ScriptedTransport,
    provider: StaticProvider | None,
    clock: Clock,
    cache: RegionCache | None = None,
) -> RequestDispatcher:
    return RequestDispatcher(config, transport, provider, region_cache=cache, clock=clock)


def _credential_region(authorization: str) -> str:
    credential = authorization.split("Credential=")[1].split(",")[0]
    return credential.split("/")[2]


# ---------------------------------------------------------------- construction


def test_invalid_mapping_config_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        RequestDispatcher({"endpoint": "bad host name"}, ScriptedTransport())


def test_mapping_config_is_validated() -> None:
    dispatcher = RequestDispatcher({"endpoint": "play.min.io", "port": 9000}, ScriptedTransport())
    assert dispatcher.config.port == 9000


def test_descriptor_normalizes_fields() -> None:
    descriptor = RequestDescriptor(
        "get", bucket="photos", query={"b": "2", "a": "1"}, headers={"X-Amz-Meta-A": "v"}
    )
    assert descriptor.method == "GET"
    assert descriptor.query == (("a", "1"), ("b", "2"))
    assert descriptor.headers == {"x-amz-meta-a": "v"}


@pytest.mark.parametrize("length", [-1, True])
def test_descriptor_rejects_bad_body_length(length: int) -> None:
    with pytest.raises(InvalidArgumentError):
        RequestDescriptor("PUT", body_length=length)


# ------------------------------------------------------------- region discovery


@pytest.mark.asyncio
async def test_discovery_retries_once_with_region_from_error(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(
        ScriptedResponse(
            400, body=error_body("AuthorizationHeaderMalformed", "wrong region", Region="eu-west-1")
        ),
        ScriptedResponse(200, body=location_body("eu-west-1")),
    )
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)

    assert await dispatcher.get_bucket_region("photos") == "eu-west-1"
    assert len(transport.requests) == 2
    first, retry = transport.requests
    assert first.request.target == "/photos?location"
    assert first.request.host == "s3.amazonaws.com"
    assert _credential_region(first.headers["authorization"]) == "us-east-1"
    assert retry.request.host == "s3.eu-west-1.amazonaws.com"
    assert _credential_region(retry.headers["authorization"]) == "eu-west-1"
    assert dispatcher.region_cache.get("photos") == "eu-west-1"

    # cached: no further discovery
    assert await dispatcher.get_bucket_region("photos") == "eu-west-1"
    assert len(transport.requests) == 2


@pytest.mark.asyncio
async def test_discovery_uses_bucket_region_header(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(
        ScriptedResponse(
            400,
            headers={"x-amz-bucket-region": "ap-south-1"},
            body=error_body("AuthorizationHeaderMalformed", "wrong region"),
        ),
        ScriptedResponse(200, body=location_body("ap-south-1")),
    )
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)
    assert await dispatcher.get_bucket_region("photos") == "ap-south-1"


@pytest.mark.asyncio
async def test_discovery_malformed_without_region_propagates(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(
        ScriptedResponse(400, body=error_body("AuthorizationHeaderMalformed", "no hint"))
    )
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)
    with pytest.raises(RemoteError) as excinfo:
        await dispatcher.get_bucket_region("photos")
    assert excinfo.value.code == "AuthorizationHeaderMalformed"
    assert len(transport.requests) == 1


@pytest.mark.asyncio
async def test_discovery_access_denied_falls_back_to_default(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(ScriptedResponse(403, body=error_body("AccessDenied", "no")))
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)

    assert await dispatcher.get_bucket_region("photos") == "us-east-1"
    assert "photos" not in dispatcher.region_cache


@pytest.mark.asyncio
async def test_discovery_other_errors_propagate(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(ScriptedResponse(404, body=error_body("NoSuchBucket", "gone")))
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)
    with pytest.raises(RemoteError, match="NoSuchBucket"):
        await dispatcher.get_bucket_region("photos")


@pytest.mark.asyncio
async def test_empty_location_is_default_region(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    transport = ScriptedTransport(ScriptedResponse(200, body=location_body("")))
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock)
    assert await dispatcher.get_bucket_region("photos") == "us-east-1"
    assert dispatcher.region_cache.get("photos") == "us-east-1"


@pytest.mark.asyncio
async def test_configured_region_skips_discovery(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-west-2")
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    await dispatcher.execute(RequestDescriptor("HEAD", bucket="photos", object_name="a.txt"))
    assert len(transport.requests) == 1
    assert transport.requests[0].request.host == "photos.s3.us-west-2.amazonaws.com"


@pytest.mark.asyncio
async def test_invalid_bucket_name_is_rejected(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    dispatcher = _dispatcher(aws_config, ScriptedTransport(), provider, fixed_clock)
    with pytest.raises(InvalidArgumentError):
        await dispatcher.get_bucket_region("Bad_Bucket")


# ------------------------------------------------------------ cache invalidation


@pytest.mark.asyncio
async def test_failure_invalidates_cached_region(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    cache = RegionCache()
    cache.set("photos", "eu-west-1")
    transport = ScriptedTransport(
        ScriptedResponse(500, body=error_body("InternalError", "boom")),
        ScriptedResponse(200, body=location_body("eu-west-1")),
        ScriptedResponse(200, body=b"data"),
    )
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock, cache)

    with pytest.raises(RemoteError):
        await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    assert "photos" not in cache
    assert transport.released == 1

    # next call rediscovers
    await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    assert transport.requests[1].request.target == "/photos?location"
    assert cache.get("photos") == "eu-west-1"


@pytest.mark.asyncio
async def test_transport_error_does_not_invalidate_cache(
    aws_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    cache = RegionCache()
    cache.set("photos", "eu-west-1")
    transport = ScriptedTransport(ConnectionResetError("reset by peer"))
    dispatcher = _dispatcher(aws_config, transport, provider, fixed_clock, cache)

    with pytest.raises(StreamError, match="reset by peer"):
        await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    assert cache.get("photos") == "eu-west-1"


# ------------------------------------------------------------------- signing


@pytest.mark.asyncio
async def test_signed_request_headers(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    await dispatcher.execute_bytes(
        RequestDescriptor("PUT", bucket="photos", object_name="a.txt"), b"abc"
    )
    sent = transport.requests[0]
    assert sent.body == b"abc"
    assert sent.headers["content-length"] == "3"
    assert sent.headers["host"] == "photos.s3.amazonaws.com"
    assert sent.headers["x-amz-date"] == "20130524T000000Z"
    assert sent.headers["x-amz-content-sha256"] == UNSIGNED_PAYLOAD
    assert sent.headers["user-agent"] == USER_AGENT
    assert sent.headers["authorization"].startswith(
        f"AWS4-HMAC-SHA256 Credential={ACCESS_KEY}/20130524/us-east-1/s3/aws4_request, "
        "SignedHeaders=host;x-amz-content-sha256;x-amz-date, Signature="
    )
    assert "x-amz-security-token" not in sent.headers


@pytest.mark.asyncio
async def test_plain_http_hashes_payload(local_config: ClientConfig, fixed_clock: Clock) -> None:
    config = local_config.model_copy(update={"region": "us-east-1"})
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(
        config, transport, StaticProvider(ACCESS_KEY, SECRET_KEY, "session"), fixed_clock
    )

    await dispatcher.execute_bytes(
        RequestDescriptor("PUT", bucket="photos", object_name="a.txt"), b"abc"
    )
    sent = transport.requests[0]
    assert sent.request.url == "http://localhost:9000/photos/a.txt"
    assert sent.headers["host"] == "localhost:9000"
    assert sent.headers["x-amz-content-sha256"] == sha256_hex(b"abc")
    assert sent.headers["x-amz-security-token"] == "session"
    assert "x-amz-security-token" in sent.headers["authorization"]


@pytest.mark.asyncio
async def test_plain_http_stream_requires_hash(local_config: ClientConfig, fixed_clock: Clock) -> None:
    config = local_config.model_copy(update={"region": "us-east-1"})
    dispatcher = _dispatcher(
        config, ScriptedTransport(), StaticProvider(ACCESS_KEY, SECRET_KEY), fixed_clock
    )

    async def body() -> AsyncIterator[bytes]:
        yield b"abc"

    with pytest.raises(InvalidArgumentError, match="sha256"):
        await dispatcher.execute(
            RequestDescriptor("PUT", bucket="photos", object_name="a.txt", body_length=3), body()
        )


@pytest.mark.asyncio
async def test_plain_http_empty_body_uses_empty_hash(
    local_config: ClientConfig, provider: StaticProvider, fixed_clock: Clock
) -> None:
    config = local_config.model_copy(update={"region": "us-east-1"})
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    assert transport.requests[0].headers["x-amz-content-sha256"] == EMPTY_SHA256


@pytest.mark.asyncio
@pytest.mark.parametrize("provider_value", [None, StaticProvider("", "")])
async def test_anonymous_requests_are_unsigned(
    provider_value: StaticProvider | None, fixed_clock: Clock
) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider_value, fixed_clock)

    await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    headers = transport.requests[0].headers
    assert "authorization" not in headers
    assert "x-amz-date" not in headers
    assert "x-amz-content-sha256" not in headers


@pytest.mark.asyncio
async def test_credentials_refreshed_per_request(fixed_clock: Clock) -> None:
    class RotatingProvider:
        def __init__(self) -> None:
            self.calls = 0

        async def retrieve(self) -> Credentials:
            self.calls += 1
            return Credentials(f"KEY{self.calls}", SECRET_KEY)

    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    rotating = RotatingProvider()
    transport = ScriptedTransport(ScriptedResponse(200), ScriptedResponse(200))
    dispatcher = RequestDispatcher(config, transport, rotating, clock=fixed_clock)

    for _ in range(2):
        await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a"))
    assert "Credential=KEY1/" in transport.requests[0].headers["authorization"]
    assert "Credential=KEY2/" in transport.requests[1].headers["authorization"]


@pytest.mark.asyncio
async def test_credential_failure_fails_request(fixed_clock: Clock) -> None:
    class BrokenProvider:
        async def retrieve(self) -> Credentials:
            raise TimeoutError("metadata endpoint timed out")

    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport()
    dispatcher = RequestDispatcher(config, transport, BrokenProvider(), clock=fixed_clock)

    with pytest.raises(CredentialsError, match="timed out"):
        await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a"))
    assert transport.requests == []


# ------------------------------------------------------------- argument checks


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs",
    [
        {"status_codes": ()},
        {"status_codes": ("200",)},
        {"status_codes": 200},
        {"region": 5},
        {"sha256": "nothex"},
        {"sha256": 1},
        {"body": b"raw bytes"},
    ],
)
async def test_execute_rejects_malformed_arguments(
    aws_config: ClientConfig, kwargs: dict[str, object], fixed_clock: Clock
) -> None:
    transport = ScriptedTransport()
    dispatcher = _dispatcher(aws_config, transport, None, fixed_clock)
    with pytest.raises(InvalidArgumentError):
        await dispatcher.execute(RequestDescriptor("GET", bucket="photos"), **kwargs)  # type: ignore[arg-type]
    assert transport.requests == []


# ---------------------------------------------------------------- body stream


@pytest.mark.asyncio
async def test_source_failure_surfaces_once(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)
    closed = False

    async def body() -> AsyncIterator[bytes]:
        nonlocal closed
        try:
            yield b"part one"
            raise OSError("source file vanished")
        finally:
            closed = True

    with pytest.raises(StreamError) as excinfo:
        await dispatcher.execute(
            RequestDescriptor("PUT", bucket="photos", object_name="a.txt", body_length=100), body()
        )
    assert "source file vanished" in str(excinfo.value)
    assert isinstance(excinfo.value.cause, OSError)
    assert closed
    assert transport.remaining == 1


@pytest.mark.asyncio
async def test_short_body_is_stream_error(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    dispatcher = _dispatcher(config, ScriptedTransport(ScriptedResponse(200)), provider, fixed_clock)

    async def body() -> AsyncIterator[bytes]:
        yield b"tiny"

    with pytest.raises(StreamError, match="expected 10"):
        await dispatcher.execute(
            RequestDescriptor("PUT", bucket="photos", object_name="a.txt", body_length=10), body()
        )


# ----------------------------------------------------------------- responses


@pytest.mark.asyncio
async def test_raw_response_is_returned_unread(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(206, body=b"0123456789"))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    response = await dispatcher.execute(
        RequestDescriptor("GET", bucket="photos", object_name="a.txt", headers={"Range": "bytes=0-9"}),
        status_codes=(200, 206),
        raw=True,
    )
    chunks = [chunk async for chunk in response.body]
    await response.release()
    assert b"".join(chunks) == b"0123456789"
    assert transport.requests[0].headers["range"] == "bytes=0-9"


@pytest.mark.asyncio
async def test_non_raw_response_is_drained_and_released(
    provider: StaticProvider, fixed_clock: Clock
) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(204))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    result = await dispatcher.execute(
        RequestDescriptor("DELETE", bucket="photos", object_name="a.txt"), status_codes=(204,)
    )
    assert result is None
    assert transport.released == 1
    assert transport.requests[0].headers["content-length"] == "0"


@pytest.mark.asyncio
async def test_head_error_without_body(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(404, headers={"x-amz-request-id": "r1"}))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    with pytest.raises(RemoteError) as excinfo:
        await dispatcher.execute(RequestDescriptor("HEAD", bucket="photos", object_name="a.txt"))
    assert excinfo.value.code == "NoSuchKey"
    assert excinfo.value.request_id == "r1"
    assert excinfo.value.resource == "/a.txt"


@pytest.mark.asyncio
async def test_execute_xml_rejects_embedded_error(
    provider: StaticProvider, fixed_clock: Clock
) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(
        ScriptedResponse(200, body=error_body("InternalError", "complete failed"))
    )
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    with pytest.raises(RemoteError) as excinfo:
        await dispatcher.execute_xml(
            RequestDescriptor(
                "POST", bucket="photos", object_name="big.bin", query={"uploadId": "u1"}
            ),
            b"<CompleteMultipartUpload/>",
        )
    assert excinfo.value.code == "InternalError"
    assert excinfo.value.status_code == 200
    assert excinfo.value.bucket == "photos"


@pytest.mark.asyncio
async def test_execute_xml_returns_document(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    document = b"<ListAllMyBucketsResult><Buckets/></ListAllMyBucketsResult>"
    transport = ScriptedTransport(ScriptedResponse(200, body=document))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    assert await dispatcher.execute_xml(RequestDescriptor("GET")) == document.decode()
    assert transport.requests[0].request.host == "s3.amazonaws.com"
    assert transport.requests[0].request.path == "/"


# -------------------------------------------------------------------- select


@pytest.mark.asyncio
async def test_select_decodes_event_stream(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    stream = records_frame(b"1,2\n") + stats_frame("<Stats/>") + end_frame()
    transport = ScriptedTransport(ScriptedResponse(200, body=stream, chunk_size=11))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)

    results = await dispatcher.select(
        RequestDescriptor("GET", bucket="photos", object_name="data.csv"),
        b"<SelectObjectContentRequest/>",
    )
    assert bytes(results.records) == b"1,2\n"
    assert results.stats == "<Stats/>"
    assert results.response is not None
    sent = transport.requests[0]
    assert sent.request.method == "POST"
    assert sent.request.target == "/data.csv?select&select-type=2"
    assert sent.body == b"<SelectObjectContentRequest/>"
    assert transport.released == 1


# ----------------------------------------------------------------- presigning


@pytest.mark.asyncio
async def test_presigned_url(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    dispatcher = _dispatcher(config, ScriptedTransport(), provider, fixed_clock)

    url = await dispatcher.presigned_url("GET", "examplebucket", "test.txt", expires=86400)
    parts = urlsplit(url)
    assert parts.netloc == "examplebucket.s3.amazonaws.com"
    assert parse_qs(parts.query)["X-Amz-Signature"] == [
        "aeeed9bbccd4d02ee5c0109b86d86835f995330da4c265957d157751f604d404"
    ]


@pytest.mark.asyncio
async def test_presigned_url_requires_credentials(fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    dispatcher = _dispatcher(config, ScriptedTransport(), None, fixed_clock)
    with pytest.raises(InvalidArgumentError):
        await dispatcher.presigned_url("GET", "photos", "a.txt")


# --------------------------------------------------------------------- trace


@pytest.mark.asyncio
async def test_trace_redacts_signature(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    transport = ScriptedTransport(ScriptedResponse(200, headers={"x-amz-request-id": "abc"}))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)
    stream = io.StringIO()

    dispatcher.trace_on(stream)
    await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    dispatcher.trace_off()

    output = stream.getvalue()
    assert "REQUEST: GET https://photos.s3.amazonaws.com/a.txt" in output
    assert "Signature=**REDACTED**" in output
    signature = transport.requests[0].headers["authorization"].split("Signature=")[1]
    assert signature not in output
    assert "RESPONSE: 200" in output


@pytest.mark.asyncio
async def test_trace_streams_are_per_client(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    first_transport = ScriptedTransport(ScriptedResponse(200), ScriptedResponse(200))
    first = _dispatcher(config, first_transport, provider, fixed_clock)
    second = _dispatcher(config, ScriptedTransport(), provider, fixed_clock)
    first_stream, second_stream = io.StringIO(), io.StringIO()

    first.trace_on(first_stream)
    second.trace_on(second_stream)
    await first.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))
    assert first_stream.getvalue().count("REQUEST: GET") == 1
    assert second_stream.getvalue() == ""

    second.trace_off()
    await first.execute(RequestDescriptor("GET", bucket="photos", object_name="b.txt"))
    assert first_stream.getvalue().count("REQUEST: GET") == 2
    assert second_stream.getvalue() == ""


@pytest.mark.asyncio
async def test_trace_request_line_keeps_port(provider: StaticProvider, fixed_clock: Clock) -> None:
    config = ClientConfig(
        endpoint="localhost", port=9000, use_ssl=False, path_style=True, region="us-east-1"
    )
    transport = ScriptedTransport(ScriptedResponse(200))
    dispatcher = _dispatcher(config, transport, provider, fixed_clock)
    stream = io.StringIO()

    dispatcher.trace_on(stream)
    await dispatcher.execute(RequestDescriptor("GET", bucket="photos", object_name="a.txt"))

    assert "REQUEST: GET http://localhost:9000/photos/a.txt" in stream.getvalue()


class _CancelledMidBody:
    """Transport whose task is cancelled after the first body chunk."""

    async def send(
        self, request: HttpRequest, body: AsyncIterable[bytes] | None
    ) -> TransportResponse:
        assert body is not None
        async for _ in body:
            raise asyncio.CancelledError()
        raise AssertionError("request body was empty")


@pytest.mark.asyncio
async def test_cancellation_closes_request_body(
    provider: StaticProvider, fixed_clock: Clock
) -> None:
    config = ClientConfig(endpoint="s3.amazonaws.com", region="us-east-1")
    dispatcher = RequestDispatcher(config, _CancelledMidBody(), provider, clock=fixed_clock)
    closed = False

    async def body() -> AsyncIterator[bytes]:
        nonlocal closed
        try:
            yield b"abc"
            yield b"def"
        finally:
            closed = True

    with pytest.raises(asyncio.CancelledError):
        await dispatcher.execute(
            RequestDescriptor("PUT", bucket="photos", object_name="a.txt", body_length=6),
            body(),
            sha256_hex(b"abcdef"),
        )
    assert closed
