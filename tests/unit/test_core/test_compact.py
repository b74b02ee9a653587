"""Tests for the compact text encoding."""

import pytest

from miro_mcp.core.errors import ValidationError
from miro_mcp.core.formatting import (
    OutputFormat,
    decode_compact,
    encode_compact,
    encode_record,
    escape_field,
    plural,
)


class TestEncodeRecord:
    """One entity per line."""

    def test_sticky_note(self):
        entity = {
            "id": "sticky1",
            "type": "sticky_note",
            "position": {"x": 100, "y": 200},
            "geometry": {"width": 80, "height": 100},
            "style": {"fillColor": "light_yellow"},
            "data": {"content": "Hello world"},
        }
        assert encode_record(entity) == "sticky_note|sticky1|100,200|80x100|light_yellow|Hello world"

    def test_float_coordinates_drop_trailing_zero(self):
        entity = {"id": "s", "type": "shape", "position": {"x": 10.0, "y": -2.5}, "data": {"shape": "circle"}}
        assert encode_record(entity) == "shape|s|10,-2.5||circle|"

    def test_missing_height_renders_zero(self):
        entity = {"id": "t", "type": "text", "position": {"x": 1, "y": 1}, "geometry": {"width": 200}, "data": {}}
        assert encode_record(entity) == "text|t|1,1|200x0|"

    def test_connector_with_top_level_endpoints(self):
        entity = {
            "id": "c",
            "type": "connector",
            "startItem": {"id": "a"},
            "endItem": {"id": "b"},
            "style": {"endStrokeCap": "arrow"},
        }
        assert encode_record(entity) == "connector|c|||a->b|arrow"

    def test_unknown_kind_uses_content_or_title(self):
        assert encode_record({"id": "d", "type": "document", "data": {"title": "Spec"}}) == "document|d|||Spec"


class TestEncodeCompact:
    """Headers and grouping."""

    def test_zero_items_is_header_only(self):
        assert encode_compact([]) == "# items count:0"

    def test_custom_label(self):
        assert encode_compact([], label="connectors") == "# connectors count:0"

    def test_grouped_output_skips_empty_groups(self):
        groups = {
            "frame": [{"id": "f", "type": "frame", "data": {"title": "F"}}],
            "shape": [],
            "text": [{"id": "t", "type": "text", "data": {"content": "T"}}],
        }

        assert encode_compact(groups, header='board:b1 "B" mod:x') == "\n".join(
            [
                '# board:b1 "B" mod:x count:2',
                "## frames (1)",
                "frame|f|||F",
                "## text (1)",
                "text|t|||T",
            ]
        )

    def test_plurals(self):
        assert plural("sticky_note") == "sticky_notes"
        assert plural("text") == "text"
        assert plural("widget") == "widgets"


class TestEscaping:
    """User text never breaks the line structure."""

    def test_escape_field(self):
        assert escape_field("a|b\nc\rd\\e") == "a\\|b\\nc\\rd\\\\e"
        assert escape_field(None) == ""

    @pytest.mark.parametrize(
        "content",
        [
            "Line 1\nLine 2|with pipe",
            "C:\\path\\n not a newline",
            "trailing backslash \\",
            "|||",
            "\r\n",
        ],
    )
    def test_decode_recovers_content(self, content):
        entity = {
            "id": "s|1",
            "type": "sticky_note",
            "position": {"x": 5, "y": 6},
            "geometry": {"width": 7, "height": 8},
            "style": {"fillColor": "blue"},
            "data": {"content": content},
        }
        text = encode_compact([entity])

        assert len(text.split("\n")) == 2
        [record] = decode_compact(text)
        assert record.kind == "sticky_note"
        assert record.id == "s|1"
        assert (record.x, record.y, record.width, record.height) == (5, 6, 7, 8)
        assert record.fields == ["blue", content]

    def test_decode_skips_section_headers(self):
        text = "# board:b count:1\n## frames (1)\nframe|f|||F"

        [record] = decode_compact(text)

        assert record.kind == "frame"
        assert record.x is None and record.width is None
        assert record.fields == ["F"]


class TestOutputFormat:
    """Output format parsing."""

    def test_toon_alias(self):
        assert OutputFormat.parse("toon") is OutputFormat.COMPACT
        assert OutputFormat.parse("JSON") is OutputFormat.JSON
        assert OutputFormat.parse(None) is OutputFormat.JSON

    def test_unknown(self):
        with pytest.raises(ValidationError):
            OutputFormat.parse("yaml")
