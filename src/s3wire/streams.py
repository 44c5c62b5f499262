# src/s3wire/streams.py
"""
Async byte-stream plumbing for request and response bodies.

Bodies are ``AsyncIterable[bytes]`` end to end; nothing here buffers a whole
object except ``read_all``, which callers use only for small XML documents.
"""

from __future__ import annotations

import logging
from typing import AsyncIterable, AsyncIterator

from .errors import ProtocolError, StreamError


_logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


async def bytes_stream(data: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield ``data`` in ``chunk_size`` slices (nothing for empty data)."""
    view = memoryview(data)
    for offset in range(0, len(view), chunk_size):
        yield bytes(view[offset : offset + chunk_size])


async def read_all(stream: AsyncIterable[bytes]) -> bytes:
    chunks = [chunk async for chunk in stream]
    return b"".join(chunks)


async def drain(stream: AsyncIterable[bytes]) -> int:
    """Consume and discard a stream, returning the number of bytes skipped."""
    skipped = 0
    async for chunk in stream:
        skipped += len(chunk)
    return skipped


class BodyPipe:
    """
    Forwards a request body from its source to the transport.

    The first failure of the source is recorded and re-raised to the transport
    as a ``StreamError``; the dispatcher then reports that recorded error
    instead of whatever secondary error the transport produced, so the caller
    sees exactly one error. ``cancel`` closes the source when the exchange
    fails on the response side.
    """

    def __init__(self, source: AsyncIterable[bytes], expected_length: int | None = None) -> None:
        self._source = source
        self._expected_length = expected_length
        self._failure: StreamError | None = None
        self._sent = 0
        self._closed = False

    @property
    def failure(self) -> StreamError | None:
        return self._failure

    @property
    def bytes_sent(self) -> int:
        return self._sent

    def _fail(self, error: StreamError) -> StreamError:
        if self._failure is None:
            self._failure = error
        return self._failure

    async def __aiter__(self) -> AsyncIterator[bytes]:
        if self._closed:
            raise self._fail(StreamError("request body stream was already consumed"))
        self._closed = True
        try:
            async for chunk in self._source:
                if not isinstance(chunk, (bytes, bytearray, memoryview)):
                    raise TypeError(f"body stream yielded {type(chunk).__name__}, expected bytes")
                self._sent += len(chunk)
                yield bytes(chunk)
        except StreamError as exc:
            raise self._fail(exc) from exc.cause
        except Exception as exc:
            raise self._fail(StreamError(f"request body stream failed: {exc}", exc)) from exc

        if self._expected_length is not None and self._sent != self._expected_length:
            raise self._fail(
                StreamError(
                    f"request body stream ended after {self._sent} bytes, "
                    f"expected {self._expected_length}"
                )
            )

    async def cancel(self) -> None:
        """Close the source if it supports ``aclose`` (async generators do)."""
        self._closed = True
        aclose = getattr(self._source, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception as exc:  # noqa: BLE001
                _logger.debug("Closing request body source failed: %s", exc)

    def raise_for_failure(self) -> None:
        if self._failure is not None:
            raise self._failure


class AsyncByteReader:
    """Exact-length reads over a chunked async stream."""

    def __init__(self, stream: AsyncIterable[bytes]) -> None:
        self._iterator = stream.__aiter__()
        self._buffer = bytearray()
        self._eof = False

    async def _fill(self, size: int) -> None:
        while len(self._buffer) < size and not self._eof:
            try:
                chunk = await self._iterator.__anext__()
            except StopAsyncIteration:
                self._eof = True
                break
            self._buffer.extend(chunk)

    async def at_eof(self) -> bool:
        await self._fill(1)
        return not self._buffer

    async def read_exactly(self, size: int) -> bytes:
        """Read ``size`` bytes or raise ``ProtocolError`` on a short stream."""
        await self._fill(size)
        if len(self._buffer) < size:
            raise ProtocolError(
                f"unexpected end of stream: wanted {size} bytes, {len(self._buffer)} left"
            )
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "bytes_stream",
    "read_all",
    "drain",
    "BodyPipe",
    "AsyncByteReader",
]
