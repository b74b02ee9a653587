"""Tests for verbosity-level filtering."""

import pytest

from miro_mcp.core.errors import ValidationError
from miro_mcp.core.formatting import FormatLevel, filter_entities, filter_entity, filter_groups


def leaf_paths(value, prefix=()):
    """Flatten nested dicts into {path: leaf}."""
    if isinstance(value, dict) and value:
        leaves = {}
        for key, child in value.items():
            leaves.update(leaf_paths(child, prefix + (key,)))
        return leaves
    return {prefix: value}


ENTITIES = [
    {
        "id": "s1",
        "type": "sticky_note",
        "data": {"content": "Hello", "shape": "square"},
        "style": {"fillColor": "light_yellow", "textAlign": "center"},
        "position": {"x": 1, "y": 2, "origin": "center", "relativeTo": "parent_top_left"},
        "geometry": {"width": 3, "height": 4, "rotation": 0},
        "parent": {"id": "f1", "links": {"self": "https://example.invalid/f1"}},
        "createdAt": "2024-01-01T00:00:00Z",
        "modifiedBy": {"id": "u1"},
        "links": {"self": "https://example.invalid/s1"},
    },
    {
        "id": "c1",
        "type": "connector",
        "startItem": {"id": "s1", "position": {"x": "50%", "y": "0%"}},
        "endItem": {"id": "s2", "snapTo": "auto"},
        "shape": "curved",
        "captions": [{"content": "yes", "position": "50%"}],
        "style": {"strokeColor": "#000000"},
        "isSupported": True,
    },
    {
        "id": "f1",
        "type": "frame",
        "data": {"title": "Frame", "format": "custom", "type": "freeform"},
        "geometry": {"width": 800, "height": 600},
    },
    {
        "id": "b1",
        "type": "board",
        "name": "Board",
        "description": "About",
        "owner": {"id": "u1"},
    },
    {"id": "x1", "type": "embed", "data": {"url": "https://example.invalid", "mode": "inline"}},
]


class TestLevelFields:
    """Field sets per level."""

    def test_minimal_sticky_note(self):
        assert filter_entity(ENTITIES[0], "minimal") == {
            "id": "s1",
            "type": "sticky_note",
            "data": {"content": "Hello"},
            "position": {"x": 1, "y": 2},
            "geometry": {"width": 3, "height": 4},
        }

    def test_minimal_connector_keeps_endpoint_ids(self):
        result = filter_entity(ENTITIES[1], FormatLevel.MINIMAL)

        assert result == {"id": "c1", "type": "connector", "startItem": {"id": "s1"}, "endItem": {"id": "s2"}}

    def test_standard_connector_adds_shape_captions_style(self):
        result = filter_entity(ENTITIES[1], "standard")

        assert result["shape"] == "curved"
        assert result["captions"] == [{"content": "yes", "position": "50%"}]
        assert result["style"] == {"strokeColor": "#000000"}
        assert "isSupported" not in result

    def test_board_name_and_description(self):
        assert filter_entity(ENTITIES[3], "minimal") == {"id": "b1", "type": "board", "name": "Board"}
        assert filter_entity(ENTITIES[3], "standard")["description"] == "About"

    def test_standard_strips_parent_links(self):
        assert filter_entity(ENTITIES[0], "standard")["parent"] == {"id": "f1"}

    def test_full_is_an_independent_copy(self):
        result = filter_entity(ENTITIES[0], "full")

        assert result == ENTITIES[0]
        result["style"]["fillColor"] = "red"
        assert ENTITIES[0]["style"]["fillColor"] == "light_yellow"

    def test_none_means_minimal(self):
        assert filter_entity(ENTITIES[2], None) == filter_entity(ENTITIES[2], "minimal")

    def test_unknown_level(self):
        with pytest.raises(ValidationError) as exc_info:
            filter_entity(ENTITIES[0], "verbose")

        assert exc_info.value.parameter == "format"


class TestSubsetInvariant:
    """Every leaf visible at a lower level is visible, unchanged, above it."""

    @pytest.mark.parametrize("entity", ENTITIES, ids=lambda e: e["type"])
    def test_minimal_within_standard_within_full(self, entity):
        minimal = leaf_paths(filter_entity(entity, "minimal"))
        standard = leaf_paths(filter_entity(entity, "standard"))
        full = leaf_paths(filter_entity(entity, "full"))

        for path, value in minimal.items():
            assert standard[path] == value
        for path, value in standard.items():
            assert full[path] == value

    def test_levels_are_ordered(self):
        assert FormatLevel.MINIMAL.rank < FormatLevel.STANDARD.rank < FormatLevel.FULL.rank


class TestCollections:
    """Lists and grouped aggregations use the same projection."""

    def test_filter_entities(self):
        result = filter_entities(ENTITIES, "minimal")
        assert result == [filter_entity(entity, "minimal") for entity in ENTITIES]

    def test_filter_groups(self):
        groups = {"sticky_note": [ENTITIES[0]], "frame": [ENTITIES[2]], "shape": []}

        result = filter_groups(groups, "standard")

        assert result == {
            "sticky_note": [filter_entity(ENTITIES[0], "standard")],
            "frame": [filter_entity(ENTITIES[2], "standard")],
            "shape": [],
        }
