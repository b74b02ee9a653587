"""MiroConfig loading and validation logic.

Provides ``_MiroConfigLoader``, a mixin class whose methods are inherited by
``MiroConfig`` (defined in ``settings.py``). Splitting loading/validation
logic into its own module keeps ``settings.py`` focused on field definitions
and simple accessor methods.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Optional, cast

from miro_mcp.config.parsing import _parse_bool, _parse_float, _parse_int
from miro_mcp.core.errors import ValidationError
from miro_mcp.core.formatting import FormatLevel, OutputFormat
from miro_mcp.core.pagination import MAX_PAGE_SIZE

if TYPE_CHECKING:
    from miro_mcp.config.settings import MiroConfig

logger = logging.getLogger(__name__)

_CONFIG_FILE_ENV_VAR = "MIRO_MCP_CONFIG_FILE"
_PROJECT_CONFIG_NAME = "miro-mcp.toml"


class _MiroConfigLoader:
    """Mixin providing config-loading methods for ``MiroConfig``.

    These methods are inherited by the ``MiroConfig`` dataclass defined in
    ``settings.py``. At runtime ``self`` is always a ``MiroConfig`` instance.
    """

    if TYPE_CHECKING:
        client_id: str
        client_secret: str
        redirect_uri: str
        access_token: Optional[str]
        refresh_token: Optional[str]
        api_base_url: str
        request_timeout: float
        page_size: int
        rate_limit_threshold: int
        format_level: FormatLevel
        output_format: OutputFormat
        log_level: str
        structured_logging: bool
        startup_warnings: List[str]

        def _add_startup_warning(self, warning: str) -> None: ...

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "MiroConfig":
        """
        Create configuration from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. Project TOML config (./miro-mcp.toml)
        3. XDG config (~/.config/miro-mcp/config.toml)
        4. Default values
        """
        config = cls()

        toml_path = config_file or os.environ.get(_CONFIG_FILE_ENV_VAR)
        if toml_path:
            config._load_toml(Path(toml_path))
        else:
            xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
            xdg_config = Path(xdg_config_home) / "miro-mcp" / "config.toml"
            if xdg_config.exists():
                config._load_toml(xdg_config)
                logger.debug(f"Loaded XDG config from {xdg_config}")

            project_config = Path(_PROJECT_CONFIG_NAME)
            if project_config.exists():
                config._load_toml(project_config)
                logger.debug(f"Loaded project config from {project_config}")

        config._load_env()
        config._validate_startup_configuration()

        return cast("MiroConfig", config)

    def _load_toml(self, path: Path) -> None:
        """Load configuration from TOML file."""
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error(f"Error loading config file {path}: {e}")
            self._add_startup_warning(f"Could not read config file {path}")
            return

        # OAuth settings
        if "oauth" in data:
            oauth = data["oauth"]
            if "client_id" in oauth:
                self.client_id = str(oauth["client_id"])
            if "client_secret" in oauth:
                self.client_secret = str(oauth["client_secret"])
            if "redirect_uri" in oauth:
                self.redirect_uri = str(oauth["redirect_uri"])

        # API settings
        if "api" in data:
            api = data["api"]
            if "base_url" in api:
                self.api_base_url = str(api["base_url"])
            if "timeout" in api:
                self._set_timeout(api["timeout"], "api.timeout")
            if "page_size" in api:
                self._set_page_size(api["page_size"], "api.page_size")
            if "rate_limit_threshold" in api:
                self._set_threshold(api["rate_limit_threshold"], "api.rate_limit_threshold")

        # Output settings
        if "output" in data:
            output = data["output"]
            if "format_level" in output:
                self._set_format_level(output["format_level"], "output.format_level")
            if "output_format" in output:
                self._set_output_format(output["output_format"], "output.output_format")

        # Logging settings
        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

    def _load_env(self) -> None:
        """Apply environment variable overrides."""
        if client_id := os.environ.get("MIRO_CLIENT_ID"):
            self.client_id = client_id
        if client_secret := os.environ.get("MIRO_CLIENT_SECRET"):
            self.client_secret = client_secret
        if redirect_uri := os.environ.get("MIRO_REDIRECT_URI"):
            self.redirect_uri = redirect_uri
        if access_token := os.environ.get("MIRO_ACCESS_TOKEN"):
            self.access_token = access_token
        if refresh_token := os.environ.get("MIRO_REFRESH_TOKEN"):
            self.refresh_token = refresh_token
        if base_url := os.environ.get("MIRO_API_BASE_URL"):
            self.api_base_url = base_url
        if timeout := os.environ.get("MIRO_REQUEST_TIMEOUT"):
            self._set_timeout(timeout, "MIRO_REQUEST_TIMEOUT")
        if page_size := os.environ.get("MIRO_PAGE_SIZE"):
            self._set_page_size(page_size, "MIRO_PAGE_SIZE")
        if threshold := os.environ.get("MIRO_RATE_LIMIT_THRESHOLD"):
            self._set_threshold(threshold, "MIRO_RATE_LIMIT_THRESHOLD")
        if format_level := os.environ.get("MIRO_FORMAT_LEVEL"):
            self._set_format_level(format_level, "MIRO_FORMAT_LEVEL")
        if output_format := os.environ.get("MIRO_OUTPUT_FORMAT"):
            self._set_output_format(output_format, "MIRO_OUTPUT_FORMAT")
        if log_level := os.environ.get("MIRO_MCP_LOG_LEVEL"):
            self.log_level = log_level.upper()
        if structured := os.environ.get("MIRO_MCP_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

    # ------------------------------------------------------------------
    # Typed setters (invalid values keep the default and warn)
    # ------------------------------------------------------------------

    def _set_timeout(self, value: Any, name: str) -> None:
        parsed = _parse_float(value, name, minimum=0.0)
        if parsed is None:
            self._add_startup_warning(f"Ignored invalid {name}={value!r}")
        else:
            self.request_timeout = parsed

    def _set_page_size(self, value: Any, name: str) -> None:
        parsed = _parse_int(value, name, minimum=1)
        if parsed is None:
            self._add_startup_warning(f"Ignored invalid {name}={value!r}")
            return
        if parsed > MAX_PAGE_SIZE:
            logger.warning("%s=%d exceeds the Miro maximum; clamping to %d", name, parsed, MAX_PAGE_SIZE)
            self._add_startup_warning(f"{name} clamped to {MAX_PAGE_SIZE}")
            parsed = MAX_PAGE_SIZE
        self.page_size = parsed

    def _set_threshold(self, value: Any, name: str) -> None:
        parsed = _parse_int(value, name, minimum=0)
        if parsed is None:
            self._add_startup_warning(f"Ignored invalid {name}={value!r}")
        else:
            self.rate_limit_threshold = parsed

    def _set_format_level(self, value: Any, name: str) -> None:
        try:
            self.format_level = FormatLevel.parse(value)
        except ValidationError:
            logger.warning("Invalid %s %r. Falling back to '%s'.", name, value, self.format_level.value)
            self._add_startup_warning(f"Ignored invalid {name}={value!r}")

    def _set_output_format(self, value: Any, name: str) -> None:
        try:
            self.output_format = OutputFormat.parse(value)
        except ValidationError:
            logger.warning("Invalid %s %r. Falling back to '%s'.", name, value, self.output_format.value)
            self._add_startup_warning(f"Ignored invalid {name}={value!r}")

    def _validate_startup_configuration(self) -> None:
        """Record warnings for settings the client cannot run without."""
        if not self.client_id or not self.client_secret:
            self._add_startup_warning(
                "MIRO_CLIENT_ID and MIRO_CLIENT_SECRET are not set; token refresh will fail"
            )
        if not self.access_token and not self.refresh_token:
            self._add_startup_warning(
                "No MIRO_ACCESS_TOKEN or MIRO_REFRESH_TOKEN configured; run the authorization flow first"
            )
        for warning in self.startup_warnings:
            logger.warning(warning)
