"""Parsing and normalization helpers for configuration values."""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_int(value: Any, name: str, minimum: Optional[int] = None) -> Optional[int]:
    """Parse an integer setting; returns None (and logs) when invalid."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s: %r. Using default.", name, value)
        return None
    if minimum is not None and parsed < minimum:
        logger.warning("%s must be >= %d, got %d. Using default.", name, minimum, parsed)
        return None
    return parsed


def _parse_float(value: Any, name: str, minimum: Optional[float] = None) -> Optional[float]:
    """Parse a float setting; returns None (and logs) when invalid."""
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError):
        logger.warning("Invalid number for %s: %r. Using default.", name, value)
        return None
    if minimum is not None and parsed <= minimum:
        logger.warning("%s must be > %s, got %s. Using default.", name, minimum, parsed)
        return None
    return parsed
