"""Result-returning wrapper over the request dispatcher.

The dispatcher raises ``RemoteError`` / ``StreamError``; this facade folds both
into the ``S3OperationError`` ADT so callers can match on every outcome instead
of catching exceptions.
"""

from __future__ import annotations

from .dispatcher import RequestDescriptor, RequestDispatcher
from .errors import RemoteError, StreamError
from .eventstream import SelectResults
from .result import Failure, Result, Success
from .s3_errors import S3OperationError, S3ServiceUnavailable, classify_remote_error
from .streams import read_all


class S3Operations:
    """Functional interface over ``RequestDispatcher``.

    All methods return Result[T, S3OperationError] instead of raising for server
    or transport failures. Argument and configuration errors still raise.

    Example:
        ```python
        ops = S3Operations(dispatcher)
        match await ops.get_object("photos", "cat.png"):
            case Success(data):
                process(data)
            case Failure(S3ObjectNotFound(bucket, key, _)):
                logger.error(f"{key} not found in {bucket}")
            case Failure(error):
                logger.error(f"S3 error: {error}")
        ```
    """

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    @staticmethod
    def _classify(error: RemoteError | StreamError, operation: str) -> S3OperationError:
        match error:
            case RemoteError():
                return classify_remote_error(error, operation)
            case StreamError():
                return S3ServiceUnavailable(error_code="StreamError", message=error.message)

    async def get_bucket_region(self, bucket: str) -> Result[str, S3OperationError]:
        """Region of ``bucket``, discovered and cached on first use."""
        try:
            return Success(await self._dispatcher.get_bucket_region(bucket))
        except (RemoteError, StreamError) as e:
            return Failure(self._classify(e, "GetBucketLocation"))

    async def get_object(self, bucket: str, key: str) -> Result[bytes, S3OperationError]:
        """Get object bytes.

        Returns:
            Success(bytes) if the object was read
            Failure(S3OperationError) for all error cases:
                - S3BucketNotFound: Bucket doesn't exist
                - S3ObjectNotFound: Key doesn't exist
                - S3AccessDenied: Permission denied
                - S3ServiceUnavailable: Throttling or transport failure
                - S3UnknownError: Other errors
        """
        try:
            response = await self._dispatcher.execute(
                RequestDescriptor("GET", bucket=bucket, object_name=key), raw=True
            )
            try:
                data = await read_all(response.body)
            finally:
                await response.release()
            return Success(data)
        except (RemoteError, StreamError) as e:
            return Failure(self._classify(e, "GetObject"))

    async def put_object(
        self, bucket: str, key: str, body: bytes, content_type: str | None = None
    ) -> Result[None, S3OperationError]:
        """Upload ``body`` in a single PUT."""
        headers = {"content-type": content_type} if content_type else {}
        try:
            await self._dispatcher.execute_bytes(
                RequestDescriptor("PUT", bucket=bucket, object_name=key, headers=headers), body
            )
            return Success(None)
        except (RemoteError, StreamError) as e:
            return Failure(self._classify(e, "PutObject"))

    async def delete_object(self, bucket: str, key: str) -> Result[None, S3OperationError]:
        """Delete an object; a missing key counts as success."""
        try:
            await self._dispatcher.execute(
                RequestDescriptor("DELETE", bucket=bucket, object_name=key),
                status_codes=(200, 204),
            )
            return Success(None)
        except RemoteError as e:
            # NoSuchKey is success (idempotent delete)
            if e.code == "NoSuchKey":
                return Success(None)
            return Failure(self._classify(e, "DeleteObject"))
        except StreamError as e:
            return Failure(self._classify(e, "DeleteObject"))

    async def select_object_content(
        self, bucket: str, key: str, request_xml: bytes
    ) -> Result[SelectResults, S3OperationError]:
        """Run a SelectObjectContent query and collect its records."""
        try:
            results = await self._dispatcher.select(
                RequestDescriptor("POST", bucket=bucket, object_name=key), request_xml
            )
            return Success(results)
        except (RemoteError, StreamError) as e:
            return Failure(self._classify(e, "SelectObjectContent"))


__all__ = ["S3Operations"]
