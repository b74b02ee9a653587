"""Configuration package for miro-mcp.

Sub-modules:
    parsing  – Boolean/number parsing helpers
    settings – MiroConfig dataclass, get_config/set_config globals
    loader   – MiroConfig loading/validation mixin (_MiroConfigLoader)
"""

from miro_mcp.config.parsing import _parse_bool  # noqa: F401
from miro_mcp.config.settings import (  # noqa: F401
    MiroConfig,
    _PACKAGE_VERSION,
    get_config,
    set_config,
)

__all__ = [
    "MiroConfig",
    "get_config",
    "set_config",
]
