"""Map transport and HTTP failures into diagnostic errors.

``classify()`` is a pure function: it inspects a failure (an httpx exception,
an error ``httpx.Response``, or any other exception) plus the request context
and returns the matching :class:`DiagnosticError` without raising it.

Classification rules (applied in order):
    1. No response received (``httpx.TransportError``, timeouts) -> Network
    2. Token endpoint failures:
       - refresh phase, 400/401 -> Auth(revoked)
       - exchange phase, any error status -> ApiError (exchange failure)
       - retry phase (after a forced refresh), 401 -> Auth(revoked)
    3. 401 -> Auth(expired) if the tracked expiry passed or is unknown,
       Auth(forbidden) if the tracked expiry says the token is still valid;
       403 -> Auth(forbidden)
    4. 429 -> RateLimited(retry_after)
    5. 400 naming a field -> Validation(parameter, expected)
    6. Any other 4xx/5xx -> ApiError(status, message)
    7. Default -> Unknown
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import httpx

from miro_mcp.core.errors.diagnostics import (
    ApiError,
    AuthError,
    AuthReason,
    DiagnosticError,
    DiagnosticKind,
    NetworkError,
    RateLimitedError,
    UnknownError,
    ValidationError,
    validation_suggestion,
)
from miro_mcp.core.shared import (
    extract_error_message,
    extract_field_error,
    parse_rate_limit_headers,
    parse_retry_after,
    redact_secrets,
)

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_SECONDS = 60.0

Failure = Union[BaseException, httpx.Response]


class RequestPhase(str, Enum):
    """Which kind of call produced the failure."""

    RESOURCE = "resource"
    RETRY = "retry"
    REFRESH = "refresh"
    EXCHANGE = "exchange"


@dataclass(frozen=True)
class FailureContext:
    """What the caller knew when the failure happened.

    Attributes:
        phase: The kind of call that failed
        token_expires_at: Tracked access-token expiry (epoch ms), if known
        now_ms: Current time (epoch ms); defaults to the wall clock
    """

    phase: RequestPhase = RequestPhase.RESOURCE
    token_expires_at: Optional[int] = None
    now_ms: Optional[int] = None

    def current_ms(self) -> int:
        return self.now_ms if self.now_ms is not None else int(time.time() * 1000)


_SUGGESTIONS = {
    DiagnosticKind.NETWORK: "check network connectivity to api.miro.com and retry the request",
    AuthReason.EXPIRED: "retry the request so the access token is refreshed, or run the authorization flow again",
    AuthReason.REVOKED: "run the authorization flow again to obtain new tokens",
    AuthReason.FORBIDDEN: "check the token's scopes (boards:read, boards:write) and your access to the board",
    DiagnosticKind.UNKNOWN: "check the logs for the underlying exception",
}

_EXCHANGE_SUGGESTION = (
    "check credentials in configuration (MIRO_CLIENT_ID, MIRO_CLIENT_SECRET, "
    "MIRO_REDIRECT_URI) and run the authorization flow again"
)


def _api_error_suggestion(status: Optional[int]) -> str:
    if status is None:
        return "check the request against the Miro REST API reference"
    if status == 404:
        return "check that the board and item ids exist and are accessible"
    if status >= 500:
        return "the Miro API is failing; retry later"
    return "check the request against the Miro REST API reference"


def _rate_limit_delay(response: httpx.Response, context: FailureContext) -> float:
    retry_after = parse_retry_after(response)
    if retry_after is not None:
        return retry_after
    now_ms = context.current_ms()
    telemetry = parse_rate_limit_headers(response.headers, now_ms=now_ms)
    if telemetry and "reset_at" in telemetry:
        delta = (telemetry["reset_at"] - now_ms) / 1000
        if delta > 0:
            return float(int(delta + 0.999))
    return DEFAULT_RETRY_AFTER_SECONDS


def _classify_response(
    response: httpx.Response,
    context: FailureContext,
    original: Optional[BaseException],
) -> DiagnosticError:
    status = response.status_code
    message = extract_error_message(response)
    err = original if isinstance(original, Exception) else None

    if context.phase is RequestPhase.REFRESH and status in (400, 401):
        return AuthError(
            AuthReason.REVOKED,
            f"Token refresh rejected: {message}",
            _SUGGESTIONS[AuthReason.REVOKED],
            status=status,
            original_error=err,
        )
    if context.phase is RequestPhase.EXCHANGE and status >= 400:
        return ApiError(
            status,
            f"Authorization code exchange failed: {message}",
            _EXCHANGE_SUGGESTION,
            original_error=err,
        )
    if context.phase is RequestPhase.RETRY and status == 401:
        return AuthError(
            AuthReason.REVOKED,
            f"Access token rejected after refresh: {message}",
            _SUGGESTIONS[AuthReason.REVOKED],
            status=status,
            original_error=err,
        )

    if status == 401:
        expires_at = context.token_expires_at
        if expires_at is not None and context.current_ms() < expires_at:
            reason = AuthReason.FORBIDDEN
        else:
            reason = AuthReason.EXPIRED
        return AuthError(reason, message, _SUGGESTIONS[reason], status=status, original_error=err)
    if status == 403:
        return AuthError(
            AuthReason.FORBIDDEN,
            message,
            _SUGGESTIONS[AuthReason.FORBIDDEN],
            status=status,
            original_error=err,
        )

    if status == 429:
        delay = _rate_limit_delay(response, context)
        return RateLimitedError(
            retry_after=delay,
            message=f"Rate limit exceeded: {message}",
            suggestion=f"retry after {delay:g} seconds",
            status=status,
            original_error=err,
        )

    if status == 400:
        field_error = extract_field_error(response)
        if field_error is not None:
            parameter, expected = field_error
            return ValidationError(
                parameter,
                expected,
                message,
                status=status,
                original_error=err,
            )

    if status >= 400:
        return ApiError(status, message, _api_error_suggestion(status), original_error=err)

    return UnknownError(
        f"Unexpected response status {status}",
        _SUGGESTIONS[DiagnosticKind.UNKNOWN],
        status=status,
        original_error=err,
    )


def classify(failure: Failure, context: Optional[FailureContext] = None) -> DiagnosticError:
    """Classify a failure into a :class:`DiagnosticError`.

    Args:
        failure: An exception raised while issuing the call, or the error
            ``httpx.Response`` itself.
        context: Request phase and tracked token expiry.

    Returns:
        The diagnostic (not raised).
    """
    context = context or FailureContext()

    if isinstance(failure, DiagnosticError):
        return failure

    if isinstance(failure, httpx.TransportError):
        timeout = isinstance(failure, httpx.TimeoutException)
        detail = "Request timed out" if timeout else "Connection failed"
        return NetworkError(
            f"{detail}: {redact_secrets(str(failure)) or type(failure).__name__}",
            _SUGGESTIONS[DiagnosticKind.NETWORK],
            timeout=timeout,
            original_error=failure,
        )

    if isinstance(failure, httpx.HTTPStatusError):
        return _classify_response(failure.response, context, failure)

    if isinstance(failure, httpx.Response):
        return _classify_response(failure, context, None)

    logger.debug("Unclassified failure: %s", type(failure).__name__)
    return UnknownError(
        redact_secrets(str(failure)) or type(failure).__name__,
        _SUGGESTIONS[DiagnosticKind.UNKNOWN],
        original_error=failure if isinstance(failure, Exception) else None,
    )


def _default_suggestion(diag: DiagnosticError) -> str:
    if isinstance(diag, AuthError):
        return _SUGGESTIONS[diag.reason]
    if isinstance(diag, ValidationError):
        return validation_suggestion(diag.parameter, diag.expected)
    if isinstance(diag, RateLimitedError):
        return f"retry after {diag.retry_after:g} seconds"
    if isinstance(diag, ApiError):
        return _api_error_suggestion(diag.status)
    return _SUGGESTIONS.get(diag.kind, _SUGGESTIONS[DiagnosticKind.UNKNOWN])


def _kind_label(diag: DiagnosticError) -> str:
    if isinstance(diag, AuthError):
        return f"auth:{diag.reason.value}"
    return diag.kind.value


def format_diagnostic(diag: DiagnosticError) -> str:
    """Render a diagnostic as a fixed-shape human string.

    Shape::

        <kind>[ (HTTP <status>)][ parameter '<name>']: <message>. Suggestion: <text>

    Example:
        ``rate_limited (HTTP 429): Rate limit exceeded: Too many requests. Suggestion: retry after 30 seconds``
    """
    parts = [_kind_label(diag)]
    if diag.status is not None:
        parts.append(f" (HTTP {diag.status})")
    if isinstance(diag, ValidationError) and diag.parameter:
        parts.append(f" parameter '{diag.parameter}'")
    message = diag.message.rstrip(". ") if diag.message else "no details"
    parts.append(f": {message}.")
    suggestion = diag.suggestion or _default_suggestion(diag)
    parts.append(f" Suggestion: {suggestion}")
    return "".join(parts)
