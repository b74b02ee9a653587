"""Compact line-oriented text encoding for large entity collections.

Layout::

    # items count:3
    sticky_note|s1|100,200|80x100|light_yellow|Hello world
    shape|sh1|300,300|50x50|rectangle|Label
    connector|c1|||s1->sh1|stealth

A mapping of kind -> entities adds one ``## <kind-plural> (<n>)`` sub-header
per non-empty kind. Each record is ``type|id|x,y|WxH|descriptors...``. Fields
are escaped (``\\`` -> ``\\\\``, newline -> ``\\n``, carriage return ->
``\\r``, ``|`` -> ``\\|``) so one record always stays on one line and field
boundaries survive arbitrary user text.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from miro_mcp.core.errors import ValidationError


class OutputFormat(str, Enum):
    """Shape of a returned collection."""

    JSON = "json"
    COMPACT = "compact"

    @classmethod
    def parse(cls, value: Union[str, "OutputFormat", None]) -> "OutputFormat":
        if value is None:
            return cls.JSON
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        if key == "toon":
            return cls.COMPACT
        try:
            return cls(key)
        except ValueError:
            raise ValidationError(
                "output_format",
                "one of json, compact",
                f"Unknown output format {value!r}",
            ) from None


KIND_PLURALS: dict[str, str] = {
    "frame": "frames",
    "sticky_note": "sticky_notes",
    "shape": "shapes",
    "text": "text",
    "card": "cards",
    "app_card": "app_cards",
    "image": "images",
    "document": "documents",
    "embed": "embeds",
    "connector": "connectors",
}

_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\r": "\\r", "|": "\\|"}
_UNESCAPES = {"\\": "\\", "n": "\n", "r": "\r", "|": "|"}


def plural(kind: str) -> str:
    return KIND_PLURALS.get(kind, f"{kind}s")


def escape_field(value: Any) -> str:
    if value is None:
        return ""
    return "".join(_ESCAPES.get(ch, ch) for ch in str(value))


def _num(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _get(entity: Mapping[str, Any], *path: str) -> Any:
    current: Any = entity
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _position(entity: Mapping[str, Any]) -> str:
    position = entity.get("position")
    if not isinstance(position, Mapping) or ("x" not in position and "y" not in position):
        return ""
    return f"{_num(position.get('x', 0))},{_num(position.get('y', 0))}"


def _geometry(entity: Mapping[str, Any]) -> str:
    geometry = entity.get("geometry")
    if not isinstance(geometry, Mapping) or ("width" not in geometry and "height" not in geometry):
        return ""
    return f"{_num(geometry.get('width', 0))}x{_num(geometry.get('height', 0))}"


def _endpoint(entity: Mapping[str, Any], name: str) -> str:
    ref = entity.get(name) or _get(entity, "data", name)
    if isinstance(ref, Mapping):
        return str(ref.get("id") or "")
    return ""


def _connector(entity: Mapping[str, Any]) -> list[Any]:
    cap = _get(entity, "style", "endStrokeCap") or _get(entity, "data", "endStrokeCap")
    return [f"{_endpoint(entity, 'startItem')}->{_endpoint(entity, 'endItem')}", cap]


def _content_or_title(entity: Mapping[str, Any]) -> list[Any]:
    return [_get(entity, "data", "content") or _get(entity, "data", "title")]


# Kind-specific descriptor fields, in record order
DESCRIPTORS: dict[str, Callable[[Mapping[str, Any]], list[Any]]] = {
    "sticky_note": lambda e: [_get(e, "style", "fillColor"), _get(e, "data", "content")],
    "shape": lambda e: [_get(e, "data", "shape"), _get(e, "data", "content")],
    "text": lambda e: [_get(e, "data", "content")],
    "frame": lambda e: [_get(e, "data", "title")],
    "card": lambda e: [_get(e, "data", "title")],
    "app_card": lambda e: [_get(e, "data", "title")],
    "connector": _connector,
}


def encode_record(entity: Mapping[str, Any]) -> str:
    """Encode one entity as a single pipe-delimited line."""
    kind = str(entity.get("type") or "")
    descriptors = DESCRIPTORS.get(kind, _content_or_title)(entity)
    fields = [
        escape_field(kind),
        escape_field(entity.get("id")),
        _position(entity),
        _geometry(entity),
        *(escape_field(value) for value in descriptors),
    ]
    return "|".join(fields)


def encode_compact(
    collection: Union[Iterable[Mapping[str, Any]], Mapping[str, Iterable[Mapping[str, Any]]]],
    *,
    label: str = "items",
    header: Optional[str] = None,
) -> str:
    """Render a collection in compact text form.

    Args:
        collection: A flat sequence of entities, or a mapping of kind ->
            entities for grouped output.
        label: Header label for the default ``# <label> count:<n>`` header.
        header: Full header text (without ``#`` and count) overriding
            ``label``, e.g. ``board:abc "Name" mod:2024-01-01T00:00:00Z``.

    Returns:
        The encoded text. An empty collection renders just the header line.
    """
    head = header if header is not None else label
    lines: list[str] = []

    if isinstance(collection, Mapping):
        total = 0
        for kind, entities in collection.items():
            entities = list(entities)
            if not entities:
                continue
            total += len(entities)
            lines.append(f"## {plural(kind)} ({len(entities)})")
            lines.extend(encode_record(entity) for entity in entities)
    else:
        entities = list(collection)
        total = len(entities)
        lines.extend(encode_record(entity) for entity in entities)

    return "\n".join([f"# {head} count:{total}", *lines])


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


@dataclass
class CompactRecord:
    """One decoded record line."""

    kind: str
    id: str
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    fields: list[str] = field(default_factory=list)


def split_record(line: str) -> list[str]:
    """Split on unescaped ``|`` and unescape each field."""
    fields: list[str] = []
    current: list[str] = []
    chars = iter(line)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            current.append(_UNESCAPES.get(nxt, "\\" + nxt))
        elif ch == "|":
            fields.append("".join(current))
            current = []
        else:
            current.append(ch)
    fields.append("".join(current))
    return fields


def _pair(value: str, sep: str) -> tuple[Optional[float], Optional[float]]:
    if not value or sep not in value:
        return None, None
    first, second = value.split(sep, 1)
    return float(first), float(second)


def decode_record(line: str) -> CompactRecord:
    parts = split_record(line)
    parts += [""] * (4 - len(parts))
    x, y = _pair(parts[2], ",")
    width, height = _pair(parts[3], "x")
    return CompactRecord(
        kind=parts[0],
        id=parts[1],
        x=x,
        y=y,
        width=width,
        height=height,
        fields=parts[4:],
    )


def decode_compact(text: str) -> list[CompactRecord]:
    """Parse compact text back into records, skipping header lines."""
    return [decode_record(line) for line in text.split("\n") if line and not line.startswith("#")]
