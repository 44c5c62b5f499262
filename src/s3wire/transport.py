# src/s3wire/transport.py
"""
HTTP exchange types and the aiohttp-backed transport.

The dispatcher only depends on the ``Transport`` protocol: anything that takes
an ``HttpRequest`` plus a body stream and hands back a ``TransportResponse``
can stand in for ``AiohttpTransport`` (the test-suite uses a scripted fake).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import TracebackType
from typing import AsyncIterable, AsyncIterator, Awaitable, Callable, Protocol

import aiohttp
from yarl import URL

from .errors import StreamError
from .helpers import QueryPairs, encode_query
from .streams import DEFAULT_CHUNK_SIZE


_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpRequest:
    """Fully addressed request handed to the transport.

    ``path`` is already resource-escaped; ``query`` is kept as sorted pairs so
    the signer and the URL builder see the same parameters.
    """

    method: str
    protocol: str
    host: str
    port: int | None
    path: str
    query: QueryPairs = ()
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        """Path plus query string, as written on the request line."""
        if not self.query:
            return self.path
        return f"{self.path}?{encode_query(self.query)}"

    @property
    def url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.protocol}://{netloc}{self.target}"


async def _no_release() -> None:
    return None


@dataclass
class TransportResponse:
    """Status, lower-cased headers and the unread response body."""

    status: int
    headers: dict[str, str]
    body: AsyncIterable[bytes]
    release: Callable[[], Awaitable[None]] = _no_release


class Transport(Protocol):
    async def send(
        self, request: HttpRequest, body: AsyncIterable[bytes] | None
    ) -> TransportResponse: ...


class AiohttpTransport:
    """
    Transport over a pooled ``aiohttp.ClientSession``.

    Usage:
        async with AiohttpTransport() as transport:
            dispatcher = RequestDispatcher(config, transport, provider)
            ...
    """

    def __init__(
        self,
        *,
        timeout: aiohttp.ClientTimeout | None = None,
        limit: int = 50,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._timeout = timeout or aiohttp.ClientTimeout(total=None)
        self._limit = limit
        self._chunk_size = chunk_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> AiohttpTransport:
        self._session = aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=self._limit),
            timeout=self._timeout,
            auto_decompress=False,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        await self.close()
        return None

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def send(
        self, request: HttpRequest, body: AsyncIterable[bytes] | None
    ) -> TransportResponse:
        if self._session is None:
            raise RuntimeError("Transport not open. Use 'async with' context manager.")

        try:
            response = await self._session.request(
                request.method,
                URL(request.url, encoded=True),
                headers=request.headers,
                data=body,
                allow_redirects=False,
                skip_auto_headers=("Content-Type",),
            )
        except aiohttp.ClientError as exc:
            raise StreamError(f"{request.method} {request.host}: {exc}", exc) from exc

        headers = {key.lower(): value for key, value in response.headers.items()}

        async def release() -> None:
            response.release()

        return TransportResponse(
            status=response.status,
            headers=headers,
            body=self._iter_body(response),
            release=release,
        )

    async def _iter_body(self, response: aiohttp.ClientResponse) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.content.iter_chunked(self._chunk_size):
                yield chunk
        except aiohttp.ClientError as exc:
            raise StreamError(f"response body stream failed: {exc}", exc) from exc
        finally:
            response.release()


__all__ = ["HttpRequest", "TransportResponse", "Transport", "AiohttpTransport"]
