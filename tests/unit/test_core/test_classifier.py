"""Tests for the failure classifier and diagnostic rendering."""

import httpx
import pytest

from miro_mcp.core.client.builders import build_payload
from miro_mcp.core.errors import (
    DEFAULT_RETRY_AFTER_SECONDS,
    ApiError,
    AuthError,
    AuthReason,
    DiagnosticKind,
    FailureContext,
    NetworkError,
    RateLimitedError,
    RequestPhase,
    UnknownError,
    ValidationError,
    classify,
    format_diagnostic,
)
from tests.unit.test_core.conftest import START_MS, make_response

NOW = START_MS


def resource(expires_at=None):
    return FailureContext(phase=RequestPhase.RESOURCE, token_expires_at=expires_at, now_ms=NOW)


class TestNetwork:
    """No response received."""

    def test_timeout(self):
        request = httpx.Request("GET", "https://api.miro.com/v2/boards")
        diag = classify(httpx.ReadTimeout("read timed out", request=request))

        assert isinstance(diag, NetworkError)
        assert diag.timeout is True
        assert diag.retryable
        assert diag.status is None

    def test_connect_error(self):
        request = httpx.Request("GET", "https://api.miro.com/v2/boards")
        diag = classify(httpx.ConnectError("name resolution failed", request=request))

        assert isinstance(diag, NetworkError)
        assert diag.timeout is False
        assert "connectivity" in diag.suggestion


class TestAuth:
    """401 / 403 and token-endpoint phases."""

    def test_401_with_passed_expiry_is_expired(self):
        diag = classify(make_response(401, {"message": "Unauthorized"}), resource(expires_at=NOW - 1))

        assert isinstance(diag, AuthError)
        assert diag.reason is AuthReason.EXPIRED

    def test_401_with_unknown_expiry_is_expired(self):
        diag = classify(make_response(401, {"message": "Unauthorized"}), resource())
        assert diag.reason is AuthReason.EXPIRED

    def test_401_while_tracked_token_is_valid_is_forbidden(self):
        diag = classify(make_response(401, {"message": "Unauthorized"}), resource(expires_at=NOW + 60_000))
        assert diag.reason is AuthReason.FORBIDDEN

    def test_403_is_forbidden(self):
        diag = classify(make_response(403, {"message": "Insufficient scopes"}), resource())

        assert diag.reason is AuthReason.FORBIDDEN
        assert "scopes" in diag.suggestion

    @pytest.mark.parametrize("status", [400, 401])
    def test_refresh_rejection_is_revoked(self, status):
        context = FailureContext(phase=RequestPhase.REFRESH, now_ms=NOW)
        diag = classify(make_response(status, {"error": "invalid_grant"}), context)

        assert isinstance(diag, AuthError)
        assert diag.reason is AuthReason.REVOKED
        assert "authorization flow" in diag.suggestion

    def test_retry_phase_401_is_revoked(self):
        context = FailureContext(phase=RequestPhase.RETRY, token_expires_at=NOW + 60_000, now_ms=NOW)
        diag = classify(make_response(401, {"message": "Unauthorized"}), context)
        assert diag.reason is AuthReason.REVOKED

    def test_exchange_failure_is_api_error(self):
        context = FailureContext(phase=RequestPhase.EXCHANGE, now_ms=NOW)
        diag = classify(make_response(401, {"error": "invalid_client"}), context)

        assert isinstance(diag, ApiError)
        assert diag.status == 401
        assert "check credentials" in diag.suggestion


class TestRateLimited:
    """429 delay resolution."""

    def test_retry_after_header(self):
        diag = classify(make_response(429, {"message": "slow down"}, headers={"Retry-After": "7"}), resource())

        assert isinstance(diag, RateLimitedError)
        assert diag.retry_after == 7.0
        assert diag.suggestion == "retry after 7 seconds"

    def test_reset_header(self):
        headers = {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": str(NOW // 1000 + 45)}
        diag = classify(make_response(429, headers=headers), resource())
        assert diag.retry_after == 45.0

    def test_default_delay(self):
        diag = classify(make_response(429), resource())
        assert diag.retry_after == DEFAULT_RETRY_AFTER_SECONDS


class TestValidationAndApi:
    """400 field errors and other statuses."""

    def test_context_fields(self):
        body = {
            "message": "Invalid parameters",
            "context": {"fields": [{"field": "data.content", "message": "must not be blank"}]},
        }
        diag = classify(make_response(400, body), resource())

        assert isinstance(diag, ValidationError)
        assert diag.parameter == "data.content"
        assert diag.expected == "must not be blank"

    def test_field_named_in_message(self):
        diag = classify(make_response(400, {"message": "Field [style.fillColor] is invalid"}), resource())

        assert isinstance(diag, ValidationError)
        assert diag.parameter == "style.fillColor"

    def test_limit_suggests_smaller_page(self):
        diag = classify(make_response(400, {"message": "bad", "parameter": "limit"}), resource())
        assert diag.suggestion == "reduce page size to <= 50"

    def test_400_without_field_is_api_error(self):
        diag = classify(make_response(400, {"message": "Bad request"}), resource())

        assert isinstance(diag, ApiError)
        assert diag.kind is DiagnosticKind.API_ERROR

    def test_404_and_5xx_suggestions(self):
        not_found = classify(make_response(404, {"message": "Board not found"}), resource())
        server = classify(make_response(503, text="Service Unavailable"), resource())

        assert "ids" in not_found.suggestion
        assert server.status == 503
        assert server.message == "Service Unavailable"
        assert "retry later" in server.suggestion

    def test_http_status_error_uses_response(self):
        request = httpx.Request("GET", "https://api.miro.com/v2/boards/x")
        response = httpx.Response(404, json={"message": "nope"}, request=request)
        error = httpx.HTTPStatusError("not found", request=request, response=response)

        diag = classify(error, resource())

        assert isinstance(diag, ApiError)
        assert diag.original_error is error

    def test_unexpected_exception_is_unknown(self):
        diag = classify(RuntimeError("boom"))

        assert isinstance(diag, UnknownError)
        assert diag.message == "boom"

    def test_diagnostic_passes_through(self):
        original = ValidationError("x", "number", "bad x")
        assert classify(original) is original

    def test_messages_are_redacted(self):
        body = {"message": "invalid access_token=abcdef1234567890abcdef"}
        diag = classify(make_response(500, body), resource())

        assert "abcdef1234567890abcdef" not in diag.message


class TestFormatDiagnostic:
    """Fixed-shape rendering."""

    def test_rate_limited(self):
        diag = RateLimitedError(30.0, "Rate limit exceeded: Too many requests", "retry after 30 seconds")

        assert format_diagnostic(diag) == (
            "rate_limited (HTTP 429): Rate limit exceeded: Too many requests. Suggestion: retry after 30 seconds"
        )

    def test_auth_reason_label(self):
        diag = AuthError(AuthReason.REVOKED, "Token refresh rejected.", "run the authorization flow again", status=400)

        assert format_diagnostic(diag) == (
            "auth:revoked (HTTP 400): Token refresh rejected. Suggestion: run the authorization flow again"
        )

    def test_validation_names_parameter(self):
        diag = ValidationError("color", "#rrggbb", "Unsupported color 'mauve'", "pass '#rrggbb'")

        assert format_diagnostic(diag) == (
            "validation parameter 'color': Unsupported color 'mauve'. Suggestion: pass '#rrggbb'"
        )

    def test_local_validation_gets_parameter_suggestion(self):
        with pytest.raises(ValidationError) as exc_info:
            build_payload("shape", {"width": "abc"}, partial=True)

        assert format_diagnostic(exc_info.value) == (
            "validation parameter 'width': Invalid number 'abc'. Suggestion: fix parameter 'width': number"
        )

    @pytest.mark.parametrize(
        "diag, suggestion",
        [
            (AuthError(AuthReason.FORBIDDEN, "no access"), "check the token's scopes"),
            (RateLimitedError(12.0), "retry after 12 seconds"),
            (ApiError(404, "Not found"), "check that the board and item ids exist"),
            (NetworkError("Connection failed"), "check network connectivity"),
        ],
    )
    def test_missing_suggestion_falls_back_on_kind(self, diag, suggestion):
        assert suggestion in format_diagnostic(diag)
        assert "underlying exception" not in format_diagnostic(diag)

    def test_network_has_no_status(self):
        diag = NetworkError("Request timed out", "check network connectivity", timeout=True)
        assert format_diagnostic(diag).startswith("network: Request timed out.")

    def test_to_dict(self):
        diag = ValidationError("limit", "<= 50", "too big", "reduce page size to <= 50", status=400)

        assert diag.to_dict() == {
            "kind": "validation",
            "status": 400,
            "message": "too big",
            "suggestion": "reduce page size to <= 50",
            "parameter": "limit",
            "expected": "<= 50",
        }
