"""OAuth2 credential handling for the Miro REST API."""

from miro_mcp.core.auth.oauth import (
    DEFAULT_REDIRECT_URI,
    MIRO_AUTHORIZE_URL,
    MIRO_TOKEN_URL,
    REFRESH_BUFFER_MS,
    OAuth2Manager,
)
from miro_mcp.core.auth.tokens import TokenSet, TokenSink, TokenStore, now_ms

__all__ = [
    "DEFAULT_REDIRECT_URI",
    "MIRO_AUTHORIZE_URL",
    "MIRO_TOKEN_URL",
    "REFRESH_BUFFER_MS",
    "OAuth2Manager",
    "TokenSet",
    "TokenSink",
    "TokenStore",
    "now_ms",
]
