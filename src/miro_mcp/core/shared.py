"""Shared HTTP helpers for the Miro client and token manager.

Pure functions over ``httpx.Response`` objects used by the client, the
OAuth2 manager and the error classifier.

Architecture constraints:
    - Imports only from stdlib and httpx types (no httpx.AsyncClient creation)
    - SECURITY: error parsing redacts tokens and client secrets; never expose
      secrets in logs, error messages, or return values.

Utilities:
    Secret redaction:
        - redact_secrets(text) -> str
    Response parsing:
        - parse_retry_after(response) -> Optional[float]
        - extract_error_message(response) -> str
        - extract_field_error(response) -> Optional[tuple[str, str]]
        - parse_rate_limit_headers(headers) -> Optional[dict]
"""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING, Any, Mapping, Optional

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Regex to detect potential access tokens / client secrets in strings
_SECRET_PATTERN = re.compile(
    r"(?i)"
    r"(?:"
    r"(?:access[_-]?token|refresh[_-]?token|client[_-]?secret|token|bearer|authorization|secret|password)"
    r"[\s:=\"']+"
    r")"
    r"['\"]?([^\s'\"&,}]{8,})['\"]?",
)

# Miro rate-limit response headers
RATE_LIMIT_LIMIT_HEADER = "X-RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"

# "Field [data.content] ..." style messages
_FIELD_IN_MESSAGE = re.compile(r"(?i)\bfield\s*[\[\"'`]([A-Za-z0-9_.\[\]-]+)[\]\"'`]")


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------


def redact_secrets(text: str) -> str:
    """Remove tokens and client secrets from a text string.

    Scans for patterns like ``access_token=...``, ``Bearer ...``,
    ``client_secret: ...`` and replaces the secret portion with ``****``.

    Args:
        text: Input text that may contain secrets.

    Returns:
        Text with secrets replaced by redacted placeholders.
    """
    if not text:
        return text

    def _replace(match: re.Match[str]) -> str:
        full = match.group(0)
        secret = match.group(1)
        return full.replace(secret, "****")

    return _SECRET_PATTERN.sub(_replace, text)


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def _json_body(response: "httpx.Response") -> Optional[dict[str, Any]]:
    try:
        data = response.json()
    except (ValueError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def parse_retry_after(response: "httpx.Response") -> Optional[float]:
    """Parse the ``Retry-After`` header from an HTTP response.

    Handles numeric (integer or float) values only. RFC 7231 date-based
    values are not supported and will return ``None``.

    Args:
        response: An httpx Response object.

    Returns:
        Seconds to wait before retrying, or ``None`` if the header is
        missing or unparseable.
    """
    retry_after = response.headers.get("Retry-After")
    if retry_after:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            pass
    return None


def extract_error_message(response: "httpx.Response") -> str:
    """Extract and redact an error message from an HTTP error response.

    Miro error bodies look like::

        {"type": "error", "code": "2.0703", "message": "Invalid parameters",
         "status": 400, "context": {"fields": [...]}}

    The token endpoint uses the OAuth2 shape ``{"error": ...,
    "error_description": ...}``. Falls back to the first 200 characters of the
    body text.

    Args:
        response: An httpx Response object.

    Returns:
        A human-readable, secret-redacted error message.
    """
    data = _json_body(response)
    if data is not None:
        msg = data.get("message") or data.get("error_description")
        if not msg:
            error_field = data.get("error")
            if isinstance(error_field, dict):
                msg = error_field.get("message", str(error_field))
            elif error_field:
                msg = str(error_field)
        if msg:
            return redact_secrets(str(msg))

    text = response.text[:200] if response.text else ""
    return redact_secrets(text) or f"HTTP {response.status_code}"


def extract_field_error(response: "httpx.Response") -> Optional[tuple[str, str]]:
    """Find the offending parameter named in a 400 response body.

    Looks at ``context.fields[0]`` (Miro's structured form), then top-level
    ``field`` / ``parameter`` keys, then a ``Field [name]`` mention in the
    message text.

    Returns:
        ``(parameter, expected_description)`` or ``None`` when the body does
        not name a field.
    """
    data = _json_body(response)
    if data is None:
        return None

    message = str(data.get("message") or "")
    context = data.get("context")
    if isinstance(context, dict):
        fields = context.get("fields")
        if isinstance(fields, list):
            for entry in fields:
                if isinstance(entry, dict) and entry.get("field"):
                    expected = entry.get("message") or entry.get("reason") or message
                    return str(entry["field"]), redact_secrets(str(expected))

    for key in ("field", "parameter", "param"):
        if data.get(key):
            return str(data[key]), redact_secrets(message)

    match = _FIELD_IN_MESSAGE.search(message)
    if match:
        return match.group(1), redact_secrets(message)
    return None


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return None


def parse_rate_limit_headers(
    headers: Mapping[str, str],
    now_ms: Optional[int] = None,
) -> Optional[dict[str, int]]:
    """Read Miro rate-limit telemetry from response headers.

    ``X-RateLimit-Reset`` is an epoch timestamp in seconds; small values are
    treated as a delta in seconds from now. Returned times are epoch ms.

    Returns:
        Dict with ``remaining`` and any of ``limit`` / ``reset_at`` found, or
        ``None`` when the response carries no remaining-quota header.
    """
    remaining = _to_int(headers.get(RATE_LIMIT_REMAINING_HEADER))
    if remaining is None:
        return None

    result: dict[str, int] = {"remaining": max(remaining, 0)}
    limit = _to_int(headers.get(RATE_LIMIT_LIMIT_HEADER))
    if limit is not None:
        result["limit"] = limit

    reset = _to_int(headers.get(RATE_LIMIT_RESET_HEADER))
    if reset is not None:
        if reset < 1_000_000_000:
            base = now_ms if now_ms is not None else int(time.time() * 1000)
            result["reset_at"] = base + reset * 1000
        elif reset < 100_000_000_000:
            result["reset_at"] = reset * 1000
        else:
            result["reset_at"] = reset
    return result
