# src/s3wire/eventstream.py
"""
Decoder for the binary event-stream framing used by SelectObjectContent.

Frame layout (all integers big-endian)::

    +-------------+--------------+-------------+---------+---------+-------------+
    | total len 4 | header len 4 | prelude CRC | headers | payload | message CRC |
    +-------------+--------------+-------------+---------+---------+-------------+

The prelude CRC covers the first 8 bytes; the message CRC covers everything
before it, prelude CRC included. Both are CRC-32 (``zlib.crc32``).

Each header is ``u8 name length, name, u8 value type, u16 value length, value``.
Names arrive as ``:message-type``, ``:event-type`` and so on; only the part
after the colon is kept.
"""

from __future__ import annotations

import logging
import struct
import zlib
from dataclasses import dataclass, field
from typing import AsyncIterable

from .errors import ChecksumMismatchError, ProtocolError, RemoteError
from .streams import AsyncByteReader


_logger = logging.getLogger(__name__)

PRELUDE_LENGTH = 8
PRELUDE_WITH_CRC_LENGTH = 12
CRC_LENGTH = 4
# prelude + prelude CRC + message CRC
FRAME_OVERHEAD = 16
MAX_FRAME_LENGTH = 16 * 1024 * 1024

_UINT32 = struct.Struct(">I")
_PRELUDE = struct.Struct(">II")
_UINT16 = struct.Struct(">H")


@dataclass(frozen=True)
class Frame:
    total_length: int
    header_length: int
    headers: dict[str, str]
    payload: bytes


@dataclass
class SelectResults:
    """Accumulated output of one select call.

    ``response`` is set only once the ``End`` event has been seen.
    """

    records: bytearray = field(default_factory=bytearray)
    stats: str | None = None
    progress: str | None = None
    response: object | None = None

    def set_response(self, response: object | None) -> None:
        self.response = response


def _header_name(raw: str) -> str:
    _, separator, name = raw.partition(":")
    return name if separator else raw


def parse_headers(data: bytes) -> dict[str, str]:
    """Decode a frame's header block into a name -> value mapping."""
    headers: dict[str, str] = {}
    offset = 0
    end = len(data)
    try:
        while offset < end:
            name_length = data[offset]
            offset += 1
            name = data[offset : offset + name_length].decode("utf-8")
            offset += name_length
            # value type byte; every header this protocol sends is a string
            offset += 1
            (value_length,) = _UINT16.unpack_from(data, offset)
            offset += 2
            if offset + value_length > end:
                raise ProtocolError("event-stream header value runs past the header block")
            headers[_header_name(name)] = data[offset : offset + value_length].decode("utf-8")
            offset += value_length
    except (IndexError, struct.error, UnicodeDecodeError) as exc:
        raise ProtocolError(f"malformed event-stream header block: {exc}") from exc
    return headers


def _check_prelude(prelude: bytes) -> tuple[int, int, int]:
    """Validate the 12-byte prelude; returns total length, header length and running CRC."""
    total_length, header_length = _PRELUDE.unpack_from(prelude, 0)
    crc = zlib.crc32(prelude[:PRELUDE_LENGTH])
    (prelude_crc,) = _UINT32.unpack_from(prelude, PRELUDE_LENGTH)
    if prelude_crc != crc:
        raise ChecksumMismatchError("Prelude", prelude_crc, crc)
    return total_length, header_length, zlib.crc32(prelude[PRELUDE_LENGTH:], crc)


def _payload_length(total_length: int, header_length: int) -> int:
    if total_length > MAX_FRAME_LENGTH:
        raise ProtocolError(
            f"event-stream frame too long: total length {total_length}, "
            f"limit {MAX_FRAME_LENGTH}"
        )
    payload_length = total_length - header_length - FRAME_OVERHEAD
    if payload_length < 0:
        raise ProtocolError(
            f"event-stream frame too short: total length {total_length}, "
            f"header length {header_length}"
        )
    return payload_length


def _check_message(crc: int, trailer: bytes) -> None:
    (message_crc,) = _UINT32.unpack(trailer)
    if message_crc != crc:
        raise ChecksumMismatchError("Message", message_crc, crc)


def _require_xml(event_type: str, headers: dict[str, str]) -> None:
    content_type = headers.get("content-type")
    if content_type != "text/xml":
        raise ProtocolError(
            f"Unexpected content-type {content_type} sent for event-type {event_type}"
        )


def apply_frame(frame: Frame, results: SelectResults) -> bool:
    """
    Fold one frame into ``results``.

    Returns:
        True when the frame is the terminal ``End`` event.

    Raises:
        RemoteError: the frame is an error message
        ProtocolError: unknown message type, or a non-XML Progress/Stats payload
    """
    headers = frame.headers
    message_type = headers.get("message-type")

    match message_type:
        case "error":
            raise RemoteError(headers.get("error-code", ""), headers.get("error-message", ""))
        case "event":
            pass
        case _:
            raise ProtocolError(f"Unexpected event-stream message type: {message_type}")

    event_type = headers.get("event-type")
    match event_type:
        case "End":
            return True
        case "Records":
            results.records.extend(frame.payload)
        case "Progress":
            _require_xml(event_type, headers)
            results.progress = frame.payload.decode("utf-8")
        case "Stats":
            _require_xml(event_type, headers)
            results.stats = frame.payload.decode("utf-8")
        case _:
            _logger.warning("Ignoring unimplemented event-stream event: %s", event_type)
    return False


class _BufferReader:
    def __init__(self, data: bytes) -> None:
        self._view = memoryview(data)
        self._offset = 0

    def at_eof(self) -> bool:
        return self._offset >= len(self._view)

    def read_exactly(self, size: int) -> bytes:
        remaining = len(self._view) - self._offset
        if remaining < size:
            raise ProtocolError(
                f"unexpected end of stream: wanted {size} bytes, {remaining} left"
            )
        chunk = bytes(self._view[self._offset : self._offset + size])
        self._offset += size
        return chunk


def _read_frame(reader: _BufferReader) -> Frame:
    prelude = reader.read_exactly(PRELUDE_WITH_CRC_LENGTH)
    total_length, header_length, crc = _check_prelude(prelude)
    payload_length = _payload_length(total_length, header_length)

    header_bytes = reader.read_exactly(header_length)
    crc = zlib.crc32(header_bytes, crc)
    headers = parse_headers(header_bytes)

    payload = reader.read_exactly(payload_length)
    crc = zlib.crc32(payload, crc)
    _check_message(crc, reader.read_exactly(CRC_LENGTH))

    return Frame(total_length, header_length, headers, payload)


async def _read_frame_async(reader: AsyncByteReader) -> Frame:
    prelude = await reader.read_exactly(PRELUDE_WITH_CRC_LENGTH)
    total_length, header_length, crc = _check_prelude(prelude)
    payload_length = _payload_length(total_length, header_length)

    header_bytes = await reader.read_exactly(header_length)
    crc = zlib.crc32(header_bytes, crc)
    headers = parse_headers(header_bytes)

    payload = await reader.read_exactly(payload_length)
    crc = zlib.crc32(payload, crc)
    _check_message(crc, await reader.read_exactly(CRC_LENGTH))

    return Frame(total_length, header_length, headers, payload)


def decode_select_response(data: bytes, response: object | None = None) -> SelectResults:
    """Decode a fully buffered event stream.

    Raises:
        ChecksumMismatchError: a prelude or message CRC did not match
        ProtocolError: malformed frame, or the data ended before ``End``
        RemoteError: the server sent an error message
    """
    results = SelectResults()
    reader = _BufferReader(data)
    while not reader.at_eof():
        if apply_frame(_read_frame(reader), results):
            results.set_response(response)
            return results
    raise ProtocolError("unexpected end of stream: no End event")


async def read_select_response(
    stream: AsyncIterable[bytes], response: object | None = None
) -> SelectResults:
    """Decode an event stream as it arrives; stops reading at the ``End`` event."""
    results = SelectResults()
    reader = AsyncByteReader(stream)
    while not await reader.at_eof():
        if apply_frame(await _read_frame_async(reader), results):
            results.set_response(response)
            return results
    raise ProtocolError("unexpected end of stream: no End event")


__all__ = [
    "Frame",
    "SelectResults",
    "parse_headers",
    "apply_frame",
    "decode_select_response",
    "read_select_response",
]
