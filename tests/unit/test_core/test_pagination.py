"""Tests for pagination utilities."""

import pytest

from miro_mcp.core.pagination import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    collect_offset_pages,
    collect_pages,
    normalize_page_size,
)


class PageSource:
    """Serves a list through cursor pages and records each query."""

    def __init__(self, items, cursor_style=True):
        self.items = items
        self.queries = []
        self.cursor_style = cursor_style

    async def __call__(self, query):
        self.queries.append(dict(query))
        limit = query["limit"]
        start = int(query.get("cursor") or query.get("offset") or 0)
        page = self.items[start : start + limit]
        body = {"data": page, "total": len(self.items)}
        if self.cursor_style and start + limit < len(self.items):
            body["cursor"] = str(start + limit)
        return body


class TestNormalizePageSize:
    """Tests for normalize_page_size function."""

    def test_none_returns_default(self):
        assert normalize_page_size(None) == DEFAULT_PAGE_SIZE

    def test_clamps_to_miro_maximum(self):
        assert MAX_PAGE_SIZE == 50
        assert normalize_page_size(200) == 50

    def test_minimum_is_one(self):
        assert normalize_page_size(0) == 1
        assert normalize_page_size(-5) == 1

    def test_shrinks_to_small_item_cap(self):
        assert normalize_page_size(50, max_items=10) == 10
        assert normalize_page_size(50, max_items=500) == 50


class TestCollectPages:
    """Tests for cursor pagination."""

    @pytest.mark.asyncio
    async def test_union_of_pages_in_order(self):
        items = list(range(120))
        source = PageSource(items)

        result = await collect_pages(source, {"type": "shape"}, page_size=100)

        assert result == items
        assert [q.get("cursor") for q in source.queries] == [None, "50", "100"]
        assert all(q["limit"] == 50 and q["type"] == "shape" for q in source.queries)

    @pytest.mark.asyncio
    async def test_max_items_truncates(self):
        source = PageSource(list(range(120)))

        result = await collect_pages(source, max_items=75)

        assert result == list(range(75))
        assert len(source.queries) == 2

    @pytest.mark.asyncio
    async def test_zero_max_items_fetches_nothing(self):
        source = PageSource(list(range(10)))

        assert await collect_pages(source, max_items=0) == []
        assert source.queries == []

    @pytest.mark.asyncio
    async def test_repeated_cursor_stops(self):
        queries = []

        async def stuck(query):
            queries.append(query)
            return {"data": [1], "cursor": "same"}

        result = await collect_pages(stuck)

        assert result == [1, 1]
        assert len(queries) == 2

    @pytest.mark.asyncio
    async def test_empty_body(self):
        async def empty(query):
            return None

        assert await collect_pages(empty) == []


class TestCollectOffsetPages:
    """Tests for offset pagination."""

    @pytest.mark.asyncio
    async def test_stops_at_total(self):
        source = PageSource(list(range(100)), cursor_style=False)

        result = await collect_offset_pages(source)

        assert result == list(range(100))
        assert [q["offset"] for q in source.queries] == [0, 50]

    @pytest.mark.asyncio
    async def test_short_page_stops(self):
        source = PageSource(list(range(30)), cursor_style=False)

        result = await collect_offset_pages(source, page_size=20)

        assert result == list(range(30))
        assert [q["offset"] for q in source.queries] == [0, 20]

    @pytest.mark.asyncio
    async def test_max_items(self):
        source = PageSource(list(range(100)), cursor_style=False)

        result = await collect_offset_pages(source, max_items=5)

        assert result == list(range(5))
        assert source.queries == [{"limit": 5, "offset": 0}]
