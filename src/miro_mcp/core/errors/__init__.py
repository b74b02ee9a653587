"""Diagnostic error hierarchy and classifier for miro-mcp.

Usage:
    from miro_mcp.core.errors import DiagnosticError, format_diagnostic

    try:
        await client.list_items(board_id)
    except DiagnosticError as e:
        print(format_diagnostic(e))
"""

from miro_mcp.core.errors.classifier import (
    DEFAULT_RETRY_AFTER_SECONDS,
    FailureContext,
    RequestPhase,
    classify,
    format_diagnostic,
)
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
)

__all__ = [
    # Classifier
    "DEFAULT_RETRY_AFTER_SECONDS",
    "FailureContext",
    "RequestPhase",
    "classify",
    "format_diagnostic",
    # Diagnostics
    "DiagnosticError",
    "DiagnosticKind",
    "AuthReason",
    "NetworkError",
    "AuthError",
    "ValidationError",
    "RateLimitedError",
    "ApiError",
    "UnknownError",
]
