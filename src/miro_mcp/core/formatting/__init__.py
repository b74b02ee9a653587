"""Result shaping: verbosity filtering and compact text encoding."""

from miro_mcp.core.formatting.compact import (
    CompactRecord,
    OutputFormat,
    decode_compact,
    encode_compact,
    encode_record,
    escape_field,
    plural,
)
from miro_mcp.core.formatting.levels import (
    FormatLevel,
    filter_entities,
    filter_entity,
    filter_groups,
)

__all__ = [
    "CompactRecord",
    "FormatLevel",
    "OutputFormat",
    "decode_compact",
    "encode_compact",
    "encode_record",
    "escape_field",
    "filter_entities",
    "filter_entity",
    "filter_groups",
    "plural",
]
