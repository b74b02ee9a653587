"""MiroConfig dataclass and global configuration state.

This module defines the ``MiroConfig`` class (field declarations and simple
accessor methods) and the global ``get_config`` / ``set_config`` helpers.
Loading and validation logic lives in the ``_MiroConfigLoader`` mixin
(``loader.py``) which ``MiroConfig`` inherits from.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_package_version
from typing import Any, Dict, List, Optional

from miro_mcp.config.loader import _MiroConfigLoader
from miro_mcp.core.auth.oauth import DEFAULT_REDIRECT_URI, DEFAULT_TIMEOUT
from miro_mcp.core.client.miro import MIRO_API_BASE_URL
from miro_mcp.core.client.rate_limit import DEFAULT_RATE_LIMIT_THRESHOLD
from miro_mcp.core.formatting import FormatLevel, OutputFormat
from miro_mcp.core.pagination import DEFAULT_PAGE_SIZE


def _get_version() -> str:
    """Get package version from metadata (single source of truth: pyproject.toml)."""
    try:
        return get_package_version("miro-mcp")
    except PackageNotFoundError:
        return "0.1.0"  # Fallback for dev without install


_PACKAGE_VERSION = _get_version()


@dataclass
class MiroConfig(_MiroConfigLoader):
    """Client configuration with support for env vars and TOML overrides."""

    # OAuth2 app credentials
    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    redirect_uri: str = DEFAULT_REDIRECT_URI

    # Seed tokens (headless callers)
    access_token: Optional[str] = field(default=None, repr=False)
    refresh_token: Optional[str] = field(default=None, repr=False)

    # API configuration
    api_base_url: str = MIRO_API_BASE_URL
    request_timeout: float = DEFAULT_TIMEOUT
    page_size: int = DEFAULT_PAGE_SIZE
    rate_limit_threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD

    # Result shaping defaults
    format_level: FormatLevel = FormatLevel.MINIMAL
    output_format: OutputFormat = OutputFormat.JSON

    # Logging configuration
    log_level: str = "INFO"
    structured_logging: bool = False

    version: str = field(default_factory=lambda: _PACKAGE_VERSION)

    startup_warnings: List[str] = field(default_factory=list, repr=False)

    def _add_startup_warning(self, message: str) -> None:
        if message and message not in self.startup_warnings:
            self.startup_warnings.append(message)

    def has_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def seed_tokens(self) -> Optional[Dict[str, Any]]:
        """Token object for ``OAuth2Manager.set_tokens_from_object``.

        A refresh token alone seeds an already-expired set so the first call
        refreshes. An access token alone is trusted for its default lifetime
        of one hour.
        """
        if not self.access_token and not self.refresh_token:
            return None
        if self.access_token:
            return {
                "access_token": self.access_token,
                "refresh_token": self.refresh_token or "",
                "expires_in": 3600,
            }
        return {
            "access_token": "",
            "refresh_token": self.refresh_token,
            "expires_at": 0,
        }

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        root_logger = logging.getLogger("miro_mcp")
        root_logger.setLevel(level)
        root_logger.addHandler(handler)


# Global configuration instance
_config: Optional[MiroConfig] = None


def get_config() -> MiroConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = MiroConfig.from_env()
    return _config


def set_config(config: MiroConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
