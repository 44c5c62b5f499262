# src/s3wire/trace.py
"""
HTTP request/response tracing on the ``s3wire.trace`` logger.

Every dispatcher owns a ``Tracer``. Records carry the tracer's id and each
stream handler filters on it, so one client's trace stream never receives
another client's requests, and detaching one stream leaves the others alone.
Applications that configure ``s3wire.trace`` themselves see every client.
"""

from __future__ import annotations

import itertools
import logging
import re
from typing import Mapping, TextIO

from .transport import HttpRequest


TRACE_LOGGER_NAME = "s3wire.trace"

_trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
_tracer_ids = itertools.count(1)

_SIGNATURE_RE = re.compile(r"Signature=([0-9a-f]+)")


def redact_authorization(value: str) -> str:
    return _SIGNATURE_RE.sub("Signature=**REDACTED**", value)


def _format_headers(headers: Mapping[str, str]) -> list[str]:
    lines = []
    for key, value in headers.items():
        if key.lower() == "authorization":
            value = redact_authorization(value)
        lines.append(f"{key}: {value}")
    return lines


def format_request(request: HttpRequest) -> str:
    lines = [f"REQUEST: {request.method} {request.url}"]
    lines.extend(_format_headers(request.headers))
    return "\n".join(lines)


def format_response(status: int, headers: Mapping[str, str], body: bytes | None = None) -> str:
    lines = [f"RESPONSE: {status}"]
    lines.extend(_format_headers(headers))
    if body:
        lines.append(body.decode("utf-8", errors="replace"))
    return "\n".join(lines)


class _TracerFilter(logging.Filter):
    def __init__(self, tracer_id: int) -> None:
        super().__init__()
        self._tracer_id = tracer_id

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, "tracer_id", None) == self._tracer_id


class Tracer:
    """Trace sink for one client."""

    def __init__(self) -> None:
        self.tracer_id = next(_tracer_ids)
        self._handler: logging.Handler | None = None

    @property
    def streaming(self) -> bool:
        return self._handler is not None

    def trace_on(self, stream: TextIO) -> None:
        """Write this client's traces to ``stream``, replacing any stream set earlier."""
        self.trace_off()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter("%(message)s\n"))
        handler.addFilter(_TracerFilter(self.tracer_id))
        _trace_logger.addHandler(handler)
        _trace_logger.setLevel(logging.DEBUG)
        self._handler = handler

    def trace_off(self) -> None:
        if self._handler is None:
            return
        _trace_logger.removeHandler(self._handler)
        self._handler = None
        if not _trace_logger.handlers:
            _trace_logger.setLevel(logging.NOTSET)

    def _emit(self, message: str) -> None:
        _trace_logger.debug(message, extra={"tracer_id": self.tracer_id})

    def log_request(self, request: HttpRequest) -> None:
        if _trace_logger.isEnabledFor(logging.DEBUG):
            self._emit(format_request(request))

    def log_response(
        self, status: int, headers: Mapping[str, str], body: bytes | None = None
    ) -> None:
        if _trace_logger.isEnabledFor(logging.DEBUG):
            self._emit(format_response(status, headers, body))


__all__ = [
    "TRACE_LOGGER_NAME",
    "redact_authorization",
    "format_request",
    "format_response",
    "Tracer",
]
