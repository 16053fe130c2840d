"""
Shared error handling for the storage access layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

# Upper bound on a control-plane response body carried in error details.
MAX_DETAIL_BODY_LENGTH = 512


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class AccessLayerException(Exception):
    """Base exception for access layer components."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class TransientNetworkError(AccessLayerException):
    """Transport-level failure that survived every retry attempt."""

    def __init__(self, message: str, attempts: int, details: Optional[Dict[str, Any]] = None):
        self.attempts = attempts
        details = dict(details or {})
        details["attempts"] = attempts
        super().__init__("TRANSIENT_NETWORK_ERROR", f"{message} (after {attempts} attempts)", details)


class DeadlineExceededError(AccessLayerException):
    """The caller's deadline passed before the operation could complete."""

    def __init__(self, message: str = "Deadline exceeded", details: Optional[Dict[str, Any]] = None):
        super().__init__("DEADLINE_EXCEEDED", message, details)


class AdminAPIRejection(AccessLayerException):
    """The control plane answered with a non-2xx status.

    Terminal: a response was received, so the request is never retried.
    """

    def __init__(self, status: int, body: str, path: Optional[str] = None):
        self.status = status
        self.body = body
        details: Dict[str, Any] = {"status": status, "body": body[:MAX_DETAIL_BODY_LENGTH]}
        if path:
            details["path"] = path
        super().__init__("ADMIN_API_REJECTION", f"Admin API returned status {status}", details)


class AdminAPIResponseError(AccessLayerException):
    """A 2xx response whose body could not be decoded."""

    def __init__(self, message: str = "Failed to decode admin API response", details: Optional[Dict[str, Any]] = None):
        super().__init__("ADMIN_API_BAD_RESPONSE", message, details)


class NoEligibleCredentialError(AccessLayerException):
    """No key granted on the bucket has both read and write permission."""

    def __init__(self, bucket: str):
        self.bucket = bucket
        super().__init__(
            "NO_ELIGIBLE_CREDENTIAL",
            f"No access key with read and write permission on bucket {bucket}",
            {"bucket": bucket}
        )


class SecretUnavailableError(AccessLayerException):
    """An eligible key was found but its secret could not be obtained."""

    def __init__(self, bucket: str, access_key_id: str, reason: str = "secret not returned"):
        self.bucket = bucket
        self.access_key_id = access_key_id
        super().__init__(
            "SECRET_UNAVAILABLE",
            f"Secret for access key {access_key_id} on bucket {bucket} is unavailable: {reason}",
            {"bucket": bucket, "access_key_id": access_key_id}
        )
