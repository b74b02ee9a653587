"""Miro REST client, item builders and rate-limit telemetry."""

from miro_mcp.core.client.builders import (
    ITEM_SCHEMAS,
    PALETTE,
    FieldRule,
    ItemSchema,
    build_payload,
    get_schema,
)
from miro_mcp.core.client.miro import MIRO_API_BASE_URL, SYNC_ITEM_KINDS, MiroClient
from miro_mcp.core.client.rate_limit import (
    DEFAULT_RATE_LIMIT_THRESHOLD,
    RateLimitStatus,
    RateLimitTracker,
)

__all__ = [
    "DEFAULT_RATE_LIMIT_THRESHOLD",
    "ITEM_SCHEMAS",
    "MIRO_API_BASE_URL",
    "PALETTE",
    "SYNC_ITEM_KINDS",
    "FieldRule",
    "ItemSchema",
    "MiroClient",
    "RateLimitStatus",
    "RateLimitTracker",
    "build_payload",
    "get_schema",
]
