"""
Service layer exceptions and failure classification.

Every failure of a logical call is classified into exactly one ErrorKind:
- REMOTE_REJECTED: upstream answered with a non-2xx status
- TRANSPORT_FAILED: connection/DNS/protocol failure, or retries exhausted
- TIMED_OUT: the per-attempt timeout fired first
- CANCELLED: the caller's cancel token fired
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed set of failure kinds."""

    REMOTE_REJECTED = "remote_rejected"
    TRANSPORT_FAILED = "transport_failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


class CancelReason(str, Enum):
    """Why a cancellation trigger fired."""

    TIMEOUT = "timeout"
    EXTERNAL = "external"


class ErrorSeverity(str, Enum):
    """Whether a failure is worth another attempt."""

    RETRYABLE = "retryable"
    TERMINAL = "terminal"


RETRYABLE_CLIENT_STATUSES = frozenset({408, 429})


def severity_for_status(status: int) -> ErrorSeverity:
    """Derive severity from an HTTP status (0 when not applicable)."""
    if 400 <= status < 500 and status not in RETRYABLE_CLIENT_STATUSES:
        return ErrorSeverity.TERMINAL
    return ErrorSeverity.RETRYABLE


class ServiceError(Exception):
    """Base exception for service layer errors."""

    kind: ErrorKind = ErrorKind.TRANSPORT_FAILED

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        service_id: str | None = None,
    ):
        self.message = message
        self.status = status
        self.code = code
        self.details = details
        self.service_id = service_id
        self.timestamp = datetime.now(timezone.utc)
        self.severity = severity_for_status(status)
        super().__init__(message)

    @property
    def is_terminal(self) -> bool:
        return self.severity == ErrorSeverity.TERMINAL

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
            "severity": self.severity.value,
            "service_id": self.service_id,
            "timestamp": self.timestamp.isoformat(),
        }


class RemoteRejectedError(ServiceError):
    """Upstream returned a non-2xx status."""

    kind = ErrorKind.REMOTE_REJECTED


class TransportFailedError(ServiceError):
    """Network request failed below the application layer."""

    kind = ErrorKind.TRANSPORT_FAILED

    def __init__(
        self,
        message: str = "Network request failed",
        last_error: ServiceError | None = None,
        attempts: int = 0,
        **kwargs: Any,
    ):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(message, **kwargs)


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    kind = ErrorKind.TIMED_OUT

    def __init__(
        self,
        message: str = "Request timed out",
        timeout: float | None = None,
        **kwargs: Any,
    ):
        self.timeout = timeout
        if timeout is not None and message == "Request timed out":
            message = f"Request timed out after {timeout}s"
        super().__init__(message, **kwargs)


class RequestCancelledError(ServiceError):
    """Caller cancelled the request."""

    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "Request cancelled", **kwargs: Any):
        super().__init__(message, **kwargs)


def classify_response(status: int, body: Any = None) -> RemoteRejectedError:
    """
    Classify a non-2xx response.

    The body is the decoded JSON payload, or None when it was absent or
    could not be decoded.
    """
    fallback = f"HTTP {status}"
    if not isinstance(body, dict):
        return RemoteRejectedError(fallback, status=status)

    message = body.get("message") or body.get("error") or fallback
    code = body.get("code")
    details = body.get("details") or body
    return RemoteRejectedError(
        str(message),
        status=status,
        code=str(code) if code is not None else None,
        details=details if isinstance(details, dict) else {"details": details},
    )


def classify_exception(
    exc: BaseException,
    scope: Any = None,
) -> ServiceError:
    """
    Classify an exception raised while an attempt was in flight.

    `scope` is the attempt's CancellationScope; when it has fired, its
    reason decides between a timeout and a caller cancellation.
    """
    if isinstance(exc, ServiceError):
        return exc

    if scope is not None and scope.fired:
        if scope.reason == CancelReason.TIMEOUT:
            return RequestTimeoutError(timeout=scope.timeout)
        return RequestCancelledError(scope.detail or "Request cancelled")

    if isinstance(exc, httpx.TimeoutException):
        return RequestTimeoutError(str(exc) or "Request timed out")

    return TransportFailedError(str(exc) or type(exc).__name__)


# User-facing text for well-known upstream error codes
ERROR_CODE_MESSAGES = {
    "USER_NOT_FOUND": "User not found. Please connect your wallet first.",
    "INVALID_ADDRESS": "Invalid wallet address provided.",
    "RATE_LIMITED": "Too many requests. Please try again later.",
}


def describe_error(error: BaseException) -> str:
    """Turn any failure into a message suitable for end users."""
    if isinstance(error, RemoteRejectedError):
        if error.code in ERROR_CODE_MESSAGES:
            return ERROR_CODE_MESSAGES[error.code]
        return error.message

    if isinstance(error, TransportFailedError):
        return "Network connection failed. Please check your internet connection."

    if isinstance(error, RequestTimeoutError):
        return "Request timed out. Please try again."

    if isinstance(error, RequestCancelledError):
        return "Request was cancelled."

    return "An unexpected error occurred. Please try again."
