# src/s3wire/errors.py
"""Exception hierarchy for the S3 wire client."""

from __future__ import annotations

from typing import Mapping


class S3WireError(Exception):
    """Base exception for all client errors."""

    pass


class ConfigurationError(S3WireError):
    """Invalid endpoint, port, bucket name, part size or endpoint combination."""

    pass


class InvalidArgumentError(ConfigurationError):
    """A call argument has the wrong shape or value."""

    def __init__(self, argument: str, message: str) -> None:
        self.argument = argument
        self.message = message
        super().__init__(f"Invalid argument {argument}: {message}")


class CredentialsError(S3WireError):
    """The credential provider failed to supply credentials."""

    pass


class ProtocolError(S3WireError):
    """The server sent something this client cannot interpret."""

    pass


class ChecksumMismatchError(ProtocolError):
    """Prelude or message CRC of an event-stream frame did not match."""

    def __init__(self, section: str, expected: int, actual: int) -> None:
        self.section = section
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"{section} checksum mismatch: frame carries CRC {expected}, "
            f"computed CRC {actual}"
        )


class StreamError(S3WireError):
    """Transport-level I/O failure on the request or response stream."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


class RemoteError(S3WireError):
    """Error response returned by the server.

    ``fields`` holds every child element of the XML ``Error`` document with
    lower-cased names; the named attributes are the ones callers use most.
    """

    def __init__(
        self,
        code: str,
        message: str,
        *,
        status_code: int | None = None,
        request_id: str | None = None,
        host_id: str | None = None,
        region: str | None = None,
        bucket: str | None = None,
        object_name: str | None = None,
        resource: str | None = None,
        fields: Mapping[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.request_id = request_id
        self.host_id = host_id
        self.region = region
        self.bucket = bucket
        self.object_name = object_name
        self.resource = resource
        self.fields: dict[str, str] = dict(fields or {})
        super().__init__(f"{code}: {message}")

    def __repr__(self) -> str:
        return (
            f"RemoteError(code={self.code!r}, message={self.message!r}, "
            f"status_code={self.status_code!r}, request_id={self.request_id!r})"
        )


__all__ = [
    "S3WireError",
    "ConfigurationError",
    "InvalidArgumentError",
    "CredentialsError",
    "ProtocolError",
    "ChecksumMismatchError",
    "StreamError",
    "RemoteError",
]
