"""Core Miro API client operations for miro-mcp."""

from miro_mcp.core.auth import OAuth2Manager, TokenSet, TokenSink, TokenStore
from miro_mcp.core.client import MiroClient, RateLimitStatus
from miro_mcp.core.errors import DiagnosticError, classify, format_diagnostic
from miro_mcp.core.formatting import FormatLevel, OutputFormat

__all__ = [
    "OAuth2Manager",
    "TokenSet",
    "TokenSink",
    "TokenStore",
    "MiroClient",
    "RateLimitStatus",
    "DiagnosticError",
    "classify",
    "format_diagnostic",
    "FormatLevel",
    "OutputFormat",
]
