"""Cursor pagination helpers for Miro list endpoints.

Miro's ``/boards/{id}/items`` and ``/connectors`` endpoints return::

    {"data": [...], "cursor": "<opaque>", "limit": 50, "size": 50, "total": 123}

and reject ``limit`` above 50 with HTTP 400. ``collect_pages`` follows the
cursor until it is exhausted or the caller's item cap is reached, so a request
for more items than one page holds is satisfied by fetching more pages.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 50
DEFAULT_PAGE_SIZE = 50

FetchPage = Callable[[dict[str, Any]], Awaitable[Any]]


def normalize_page_size(page_size: Optional[int], max_items: Optional[int] = None) -> int:
    """Clamp a requested page size to ``[1, MAX_PAGE_SIZE]``.

    When an item cap smaller than a page is given, the page size shrinks to
    the cap so no more items than needed are fetched.
    """
    size = DEFAULT_PAGE_SIZE if page_size is None else int(page_size)
    if max_items is not None and max_items > 0:
        size = min(size, max_items)
    return max(1, min(size, MAX_PAGE_SIZE))


async def collect_pages(
    fetch_page: FetchPage,
    params: Optional[dict[str, Any]] = None,
    *,
    max_items: Optional[int] = None,
    page_size: Optional[int] = None,
) -> list[Any]:
    """Follow cursors and return the concatenated ``data`` of every page.

    Args:
        fetch_page: Async callable issuing one request with the given query
            params and returning the decoded JSON body.
        params: Base query parameters (``type`` filter etc.).
        max_items: Stop once this many items are collected. ``None`` means
            exhaust the cursor.
        page_size: Requested page size; clamped to ``MAX_PAGE_SIZE``.

    Returns:
        Items in upstream order, at most ``max_items`` long.
    """
    if max_items is not None and max_items <= 0:
        return []

    limit = normalize_page_size(page_size, max_items)
    items: list[Any] = []
    cursor: Optional[str] = None
    pages = 0

    while True:
        query = dict(params or {})
        query["limit"] = limit
        if cursor:
            query["cursor"] = cursor

        body = await fetch_page(query) or {}
        pages += 1
        items.extend(body.get("data") or [])

        if max_items is not None and len(items) >= max_items:
            items = items[:max_items]
            break

        next_cursor = body.get("cursor")
        if not next_cursor or next_cursor == cursor:
            break
        cursor = next_cursor

    logger.debug("Collected %d items over %d page(s)", len(items), pages)
    return items


async def collect_offset_pages(
    fetch_page: FetchPage,
    params: Optional[dict[str, Any]] = None,
    *,
    max_items: Optional[int] = None,
    page_size: Optional[int] = None,
) -> list[Any]:
    """Offset-paginated variant used by ``GET /boards``.

    The board listing reports ``offset``, ``size`` and ``total`` instead of a
    cursor; pages are requested until ``total`` is reached, a short page is
    returned, or ``max_items`` is satisfied.
    """
    if max_items is not None and max_items <= 0:
        return []

    limit = normalize_page_size(page_size, max_items)
    items: list[Any] = []
    offset = 0

    while True:
        query = dict(params or {})
        query["limit"] = limit
        query["offset"] = offset

        body = await fetch_page(query) or {}
        page = body.get("data") or []
        items.extend(page)

        if max_items is not None and len(items) >= max_items:
            return items[:max_items]

        offset += len(page)
        total = body.get("total")
        if not page or len(page) < limit or (total is not None and offset >= total):
            return items
