"""
Error types shared by the coordinator, the store adapter and the HTTP layer
"""

from typing import Optional

from botocore.exceptions import ClientError


class CompanionError(Exception):
    """Base class for errors reported to upload clients"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgumentError(CompanionError):
    """A client supplied a malformed or missing field"""

    status_code = 400


class UpstreamError(CompanionError):
    """The object store rejected or failed a call

    Only the operation name reaches the client; the store's error code is
    kept for server-side logging.
    """

    status_code = 500

    def __init__(self, operation: str, code: Optional[str] = None):
        super().__init__(f"s3: {operation} failed")
        self.operation = operation
        self.code = code


def describe_client_error(exc: Exception) -> Optional[str]:
    """Return the S3 error code carried by a botocore ClientError, if any"""
    if isinstance(exc, ClientError):
        err = exc.response.get("Error", {}) or {}
        return err.get("Code")
    return None
