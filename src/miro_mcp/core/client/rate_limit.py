"""Advisory rate-limit telemetry read from Miro response headers.

The client never throttles on its own. It records what the most recent
response reported so callers can back off proactively once ``remaining``
drops to the configured low-water ``threshold``.
"""

import logging
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from miro_mcp.core.shared import parse_rate_limit_headers

logger = logging.getLogger(__name__)

DEFAULT_RATE_LIMIT_THRESHOLD = 10
INITIAL_REMAINING = 100


@dataclass
class RateLimitStatus:
    """Last-known rate-limit snapshot.

    Attributes:
        remaining: Requests (or credits) left in the current window
        threshold: Low-water mark used by callers for proactive backoff
        reset_at: When the window resets (epoch ms)
        limit: Window size as reported upstream, if any
    """

    remaining: int = INITIAL_REMAINING
    threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD
    reset_at: int = 0
    limit: Optional[int] = None

    @property
    def is_low(self) -> bool:
        """True once ``remaining`` is at or below ``threshold``."""
        return self.remaining <= self.threshold

    def to_dict(self) -> dict:
        return {
            "remaining": self.remaining,
            "threshold": self.threshold,
            "reset_at": self.reset_at,
            "limit": self.limit,
            "is_low": self.is_low,
        }


class RateLimitTracker:
    """Owns the mutable ``RateLimitStatus`` for one client."""

    def __init__(self, threshold: int = DEFAULT_RATE_LIMIT_THRESHOLD, now_ms: int = 0):
        self._status = RateLimitStatus(threshold=max(threshold, 0), reset_at=now_ms)

    @property
    def threshold(self) -> int:
        return self._status.threshold

    @threshold.setter
    def threshold(self, value: int) -> None:
        self._status.threshold = max(int(value), 0)

    def update(self, headers: Mapping[str, str], now_ms: Optional[int] = None) -> bool:
        """Recompute the snapshot from response headers.

        Returns:
            True if the headers carried rate-limit telemetry.
        """
        telemetry = parse_rate_limit_headers(headers, now_ms=now_ms)
        if telemetry is None:
            return False

        was_low = self._status.is_low
        self._status.remaining = telemetry["remaining"]
        if "limit" in telemetry:
            self._status.limit = telemetry["limit"]
        if "reset_at" in telemetry:
            self._status.reset_at = telemetry["reset_at"]

        if self._status.is_low and not was_low:
            logger.warning(
                "Miro rate limit low: %d remaining (threshold %d), resets at %d",
                self._status.remaining,
                self._status.threshold,
                self._status.reset_at,
            )
        return True

    def snapshot(self) -> RateLimitStatus:
        """Return a copy so callers cannot mutate the shared state."""
        return replace(self._status)
