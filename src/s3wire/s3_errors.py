"""S3 Error ADT - Algebraic Data Types for S3 operation failures.

``RemoteError`` exceptions raised by the dispatcher are folded into these frozen
dataclasses by ``classify_remote_error`` so the ``S3Operations`` facade can
return them inside a ``Result`` and callers can match exhaustively.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import RemoteError


@dataclass(frozen=True)
class S3BucketNotFound:
    """Bucket does not exist (``NoSuchBucket``).

    Attributes:
        bucket_name: Name of the bucket that was not found
        message: Error message from the server
    """

    bucket_name: str
    message: str


@dataclass(frozen=True)
class S3ObjectNotFound:
    """Object does not exist in the bucket (``NoSuchKey``).

    Attributes:
        bucket_name: Name of the bucket
        key: Object key that was not found
        message: Error message from the server
    """

    bucket_name: str
    key: str
    message: str


@dataclass(frozen=True)
class S3AccessDenied:
    """Credentials lack permission, or the signature was rejected.

    Attributes:
        bucket_name: Name of the bucket being accessed
        operation: Operation that was denied (e.g. "GetObject")
        message: Error message from the server
    """

    bucket_name: str
    operation: str
    message: str


@dataclass(frozen=True)
class S3RegionMismatch:
    """Request was addressed or signed for the wrong region.

    Attributes:
        bucket_name: Name of the bucket
        expected_region: Region reported by the server, if any
        message: Error message from the server
    """

    bucket_name: str
    expected_region: str | None
    message: str


@dataclass(frozen=True)
class S3ServiceUnavailable:
    """Server is throttling or temporarily unable to answer.

    Attributes:
        error_code: Error code from the server (e.g. "SlowDown")
        message: Error message from the server
    """

    error_code: str
    message: str


@dataclass(frozen=True)
class S3UnknownError:
    """Catch-all for error codes without a dedicated variant.

    Attributes:
        error_code: Error code from the server
        message: Error message from the server
        status_code: HTTP status of the failed response, if known
    """

    error_code: str
    message: str
    status_code: int | None = None


# Union type for all S3 errors - enables exhaustive pattern matching
S3OperationError = (
    S3BucketNotFound
    | S3ObjectNotFound
    | S3AccessDenied
    | S3RegionMismatch
    | S3ServiceUnavailable
    | S3UnknownError
)


def classify_remote_error(error: RemoteError, operation: str) -> S3OperationError:
    """Classify a RemoteError into the matching S3OperationError variant.

    Args:
        error: Error raised by the dispatcher
        operation: Logical operation that failed (e.g. "GetObject")

    Returns:
        Specific S3OperationError variant based on the error code
    """
    bucket = error.bucket or ""
    match error.code:
        case "NoSuchBucket":
            return S3BucketNotFound(bucket_name=bucket, message=error.message)

        case "NoSuchKey":
            return S3ObjectNotFound(
                bucket_name=bucket, key=error.object_name or "", message=error.message
            )

        case "AccessDenied" | "Forbidden" | "InvalidAccessKeyId" | "SignatureDoesNotMatch":
            return S3AccessDenied(bucket_name=bucket, operation=operation, message=error.message)

        case (
            "AuthorizationHeaderMalformed"
            | "PermanentRedirect"
            | "MovedPermanently"
            | "TemporaryRedirect"
        ):
            return S3RegionMismatch(
                bucket_name=bucket, expected_region=error.region, message=error.message
            )

        case "RequestTimeout" | "ServiceUnavailable" | "SlowDown" | "InternalError":
            return S3ServiceUnavailable(error_code=error.code, message=error.message)

        case _:
            return S3UnknownError(
                error_code=error.code, message=error.message, status_code=error.status_code
            )


__all__ = [
    "S3BucketNotFound",
    "S3ObjectNotFound",
    "S3AccessDenied",
    "S3RegionMismatch",
    "S3ServiceUnavailable",
    "S3UnknownError",
    "S3OperationError",
    "classify_remote_error",
]
