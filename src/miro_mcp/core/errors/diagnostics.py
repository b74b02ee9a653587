"""Diagnostic error classes for Miro API failures.

Every failure surfaced by the client is one of these. The ``kind`` attribute
mirrors the subclass so callers can either catch by type or switch on the
enum value.
"""

from enum import Enum
from typing import Optional

MAX_PAGE_SIZE_HINT = 50


class DiagnosticKind(str, Enum):
    """Top-level classification of a failure."""

    NETWORK = "network"
    AUTH = "auth"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


class AuthReason(str, Enum):
    """Sub-kind of an authentication failure."""

    EXPIRED = "expired"
    REVOKED = "revoked"
    FORBIDDEN = "forbidden"


class DiagnosticError(Exception):
    """Base exception for classified Miro failures.

    Attributes:
        kind: Classification of the failure
        message: Human-readable error description (secret-redacted)
        suggestion: One concrete remediation step
        status: HTTP status code when a response was received
        original_error: The underlying exception if available
    """

    kind: DiagnosticKind = DiagnosticKind.UNKNOWN

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        status: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.message = message
        self.suggestion = suggestion
        self.status = status
        self.original_error = original_error
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same call unchanged."""
        return False

    def to_dict(self) -> dict:
        """Return a JSON-serializable summary of the diagnostic."""
        return {
            "kind": self.kind.value,
            "status": self.status,
            "message": self.message,
            "suggestion": self.suggestion,
        }


class NetworkError(DiagnosticError):
    """No response was received (connection failure, DNS, timeout).

    Safe to retry at the caller's discretion; the client never does.
    """

    kind = DiagnosticKind.NETWORK

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        timeout: bool = False,
        original_error: Optional[Exception] = None,
    ):
        self.timeout = timeout
        super().__init__(message, suggestion, original_error=original_error)

    @property
    def retryable(self) -> bool:
        return True


class AuthError(DiagnosticError):
    """Authentication or authorization failure.

    ``reason`` distinguishes an expired access token (recoverable with one
    refresh), a revoked credential (re-authorize) and a forbidden operation
    (check scopes and permissions).
    """

    kind = DiagnosticKind.AUTH

    def __init__(
        self,
        reason: AuthReason,
        message: str,
        suggestion: str = "",
        status: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.reason = reason
        super().__init__(message, suggestion, status, original_error)

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["reason"] = self.reason.value
        return result


def validation_suggestion(parameter: Optional[str], expected: Optional[str]) -> str:
    """Remediation for an invalid parameter, used when none is given."""
    if parameter in ("limit", "page_size"):
        return f"reduce page size to <= {MAX_PAGE_SIZE_HINT}"
    if parameter and expected:
        return f"fix parameter '{parameter}': {expected}"
    if parameter:
        return f"fix parameter '{parameter}'"
    return "fix the request parameters"


class ValidationError(DiagnosticError):
    """The request named an invalid parameter. Never retried."""

    kind = DiagnosticKind.VALIDATION

    def __init__(
        self,
        parameter: Optional[str],
        expected: Optional[str],
        message: str,
        suggestion: str = "",
        status: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        self.parameter = parameter
        self.expected = expected
        super().__init__(message, suggestion or validation_suggestion(parameter, expected), status, original_error)

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["parameter"] = self.parameter
        result["expected"] = self.expected
        return result


class RateLimitedError(DiagnosticError):
    """The upstream rate limit was exceeded.

    Retryable by the caller after ``retry_after`` seconds. The client itself
    never retries it.
    """

    kind = DiagnosticKind.RATE_LIMITED

    def __init__(
        self,
        retry_after: float,
        message: str = "Rate limit exceeded",
        suggestion: str = "",
        status: Optional[int] = 429,
        original_error: Optional[Exception] = None,
    ):
        self.retry_after = retry_after
        super().__init__(message, suggestion, status, original_error)

    @property
    def retryable(self) -> bool:
        return True

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["retry_after"] = self.retry_after
        return result


class ApiError(DiagnosticError):
    """Any other HTTP error response from the upstream API."""

    kind = DiagnosticKind.API_ERROR

    def __init__(
        self,
        status: Optional[int],
        message: str,
        suggestion: str = "",
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, suggestion, status, original_error)


class UnknownError(DiagnosticError):
    """A failure that matched no other classification."""

    kind = DiagnosticKind.UNKNOWN
