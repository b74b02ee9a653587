"""Per-kind payload normalization for Miro item create/update calls.

Miro item kinds disagree on wire encoding: sticky notes take a symbolic
palette name for ``fillColor`` while shapes, text, frames and connectors need
``#rrggbb``; connector caption positions are percentage strings; sticky notes
accept a width or a height but not both. Each kind therefore gets one
``ItemSchema`` entry mapping caller-facing option names to a payload path and
a transform, and ``build_payload`` applies the table uniformly.

Geometry is never defaulted: an option left unset (``None``) is omitted from
the payload entirely.

``parent_id`` attaches the item to a container such as a frame. When set, Miro
interprets ``x``/``y`` relative to the container's top-left corner instead of
the board origin, so callers placing items inside a frame must pass
frame-local coordinates.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional, Union

from miro_mcp.core.errors import ValidationError

Transform = Callable[[Any, str], Any]
PathKey = Union[str, int]

# Miro sticky-note palette; hex values are what the board renders
PALETTE: dict[str, str] = {
    "gray": "#e6e6e6",
    "light_yellow": "#fff9b1",
    "yellow": "#f5d128",
    "orange": "#ff9d48",
    "light_green": "#d5f692",
    "green": "#c9df56",
    "dark_green": "#93d275",
    "cyan": "#67c6c0",
    "light_pink": "#ffcee0",
    "pink": "#ea94bb",
    "violet": "#c6a2d2",
    "red": "#f0939d",
    "light_blue": "#a6ccf5",
    "blue": "#6cd8fa",
    "dark_blue": "#9ea9ff",
    "black": "#1a1a1a",
}

# Named colors accepted for hex kinds in addition to the sticky palette
EXTRA_COLORS: dict[str, str] = {
    "white": "#ffffff",
    "transparent": "transparent",
}

STICKY_NOTE_SHAPES = frozenset({"square", "rectangle"})
CONNECTOR_SHAPES = frozenset({"straight", "elbowed", "curved"})
STROKE_CAPS = frozenset(
    {
        "none",
        "stealth",
        "rounded_stealth",
        "diamond",
        "filled_diamond",
        "oval",
        "filled_oval",
        "arrow",
        "triangle",
        "filled_triangle",
        "erd_one",
        "erd_many",
        "erd_only_one",
        "erd_zero_or_one",
        "erd_one_or_many",
        "erd_zero_or_many",
    }
)

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")
_HEX_TO_PALETTE = {hex_value: name for name, hex_value in PALETTE.items()}


# ---------------------------------------------------------------------------
# Transforms
# ---------------------------------------------------------------------------


def _color_key(value: Any) -> str:
    return str(value).strip().lower().replace(" ", "_").replace("-", "_")


def _normalize_hex(value: Any) -> Optional[str]:
    match = _HEX_COLOR.match(str(value).strip())
    if not match:
        return None
    digits = match.group(1).lower()
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return f"#{digits}"


def palette_color(value: Any, parameter: str) -> str:
    """Sticky-note color: a palette name (a palette hex maps back to its name)."""
    key = _color_key(value)
    if key in PALETTE:
        return key
    hex_value = _normalize_hex(value)
    if hex_value in _HEX_TO_PALETTE:
        return _HEX_TO_PALETTE[hex_value]
    raise ValidationError(
        parameter,
        f"one of {', '.join(PALETTE)}",
        f"Unsupported sticky note color {value!r}",
        f"use a palette name such as 'light_yellow' for '{parameter}'",
    )


def hex_color(value: Any, parameter: str) -> str:
    """Hex-only kinds: translate palette names, normalize ``#rgb``/``#rrggbb``."""
    key = _color_key(value)
    if key in PALETTE:
        return PALETTE[key]
    if key in EXTRA_COLORS:
        return EXTRA_COLORS[key]
    hex_value = _normalize_hex(value)
    if hex_value is not None:
        return hex_value
    raise ValidationError(
        parameter,
        "#rrggbb hex string or palette name",
        f"Unsupported color {value!r}",
        f"pass '{parameter}' as '#rrggbb' or a palette name",
    )


def percentage(value: Any, parameter: str) -> str:
    """Serialize a relative position as ``"NN%"``.

    Fractions in ``[0, 1]`` are scaled; strings already ending in ``%`` pass
    through after a range check.
    """
    if isinstance(value, str) and value.strip().endswith("%"):
        number = value.strip()[:-1]
        try:
            pct = float(number)
        except ValueError:
            pct = -1.0
    elif isinstance(value, (int, float)) and not isinstance(value, bool) and 0 <= value <= 1:
        pct = float(value) * 100
    else:
        pct = -1.0
    if not 0 <= pct <= 100:
        raise ValidationError(
            parameter,
            "fraction between 0 and 1 or percentage string like '50%'",
            f"Invalid relative position {value!r}",
        )
    return f"{pct:g}%"


def number(value: Any, parameter: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(parameter, "number", f"Invalid number {value!r}")
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ValidationError(parameter, "number", f"Invalid number {value!r}") from None
    return int(result) if result.is_integer() else result


def positive_number(value: Any, parameter: str) -> float:
    result = number(value, parameter)
    if result <= 0:
        raise ValidationError(parameter, "positive number", f"{parameter} must be > 0, got {value!r}")
    return result


def numeric_string(value: Any, parameter: str) -> str:
    """Miro encodes stroke widths and font sizes as strings."""
    return f"{positive_number(value, parameter):g}"


def text(value: Any, parameter: str) -> str:
    return str(value)


def identifier(value: Any, parameter: str) -> str:
    result = str(value).strip()
    if not result:
        raise ValidationError(parameter, "non-empty item id", f"Empty {parameter}")
    return result


def one_of(allowed: frozenset) -> Transform:
    def transform(value: Any, parameter: str) -> str:
        key = _color_key(value)
        if key not in allowed:
            raise ValidationError(
                parameter,
                f"one of {', '.join(sorted(allowed))}",
                f"Unsupported {parameter} {value!r}",
            )
        return key

    return transform


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldRule:
    """Where a caller option lands in the payload and how it is encoded."""

    path: tuple[PathKey, ...]
    transform: Transform = text


@dataclass(frozen=True)
class ItemSchema:
    """Normalization descriptor for one item kind.

    Attributes:
        kind: Miro item type (``sticky_note``, ``shape``...)
        endpoint: Collection path segment under ``/boards/{id}/``
        fields: Caller option name -> rule
        required: Options that must be given on create
        exclusive: Groups of options of which at most one may be set
        depends: Option -> option it requires
    """

    kind: str
    endpoint: str
    fields: Mapping[str, FieldRule]
    required: tuple[str, ...] = ()
    exclusive: tuple[tuple[str, ...], ...] = ()
    depends: Mapping[str, str] = field(default_factory=dict)


_POSITION = {
    "x": FieldRule(("position", "x"), number),
    "y": FieldRule(("position", "y"), number),
    "parent_id": FieldRule(("parent", "id"), identifier),
}
_GEOMETRY = {
    "width": FieldRule(("geometry", "width"), positive_number),
    "height": FieldRule(("geometry", "height"), positive_number),
    "rotation": FieldRule(("geometry", "rotation"), number),
}

ITEM_SCHEMAS: dict[str, ItemSchema] = {
    "sticky_note": ItemSchema(
        kind="sticky_note",
        endpoint="sticky_notes",
        fields={
            "content": FieldRule(("data", "content")),
            "shape": FieldRule(("data", "shape"), one_of(STICKY_NOTE_SHAPES)),
            "color": FieldRule(("style", "fillColor"), palette_color),
            "text_align": FieldRule(("style", "textAlign")),
            **_POSITION,
            "width": _GEOMETRY["width"],
            "height": _GEOMETRY["height"],
        },
        exclusive=(("width", "height"),),
    ),
    "shape": ItemSchema(
        kind="shape",
        endpoint="shapes",
        fields={
            "content": FieldRule(("data", "content")),
            "shape": FieldRule(("data", "shape"), lambda v, p: _color_key(v)),
            "color": FieldRule(("style", "fillColor"), hex_color),
            "border_color": FieldRule(("style", "borderColor"), hex_color),
            "border_width": FieldRule(("style", "borderWidth"), numeric_string),
            "text_color": FieldRule(("style", "color"), hex_color),
            "font_size": FieldRule(("style", "fontSize"), numeric_string),
            **_POSITION,
            **_GEOMETRY,
        },
    ),
    "text": ItemSchema(
        kind="text",
        endpoint="texts",
        fields={
            "content": FieldRule(("data", "content")),
            "color": FieldRule(("style", "color"), hex_color),
            "background_color": FieldRule(("style", "fillColor"), hex_color),
            "font_size": FieldRule(("style", "fontSize"), numeric_string),
            **_POSITION,
            "width": _GEOMETRY["width"],
            "rotation": _GEOMETRY["rotation"],
        },
        required=("content",),
    ),
    "frame": ItemSchema(
        kind="frame",
        endpoint="frames",
        fields={
            "title": FieldRule(("data", "title")),
            "color": FieldRule(("style", "fillColor"), hex_color),
            "x": _POSITION["x"],
            "y": _POSITION["y"],
            "width": _GEOMETRY["width"],
            "height": _GEOMETRY["height"],
        },
    ),
    "connector": ItemSchema(
        kind="connector",
        endpoint="connectors",
        fields={
            "start_item_id": FieldRule(("startItem", "id"), identifier),
            "end_item_id": FieldRule(("endItem", "id"), identifier),
            "shape": FieldRule(("shape",), one_of(CONNECTOR_SHAPES)),
            "stroke_color": FieldRule(("style", "strokeColor"), hex_color),
            "stroke_width": FieldRule(("style", "strokeWidth"), numeric_string),
            "start_stroke_cap": FieldRule(("style", "startStrokeCap"), one_of(STROKE_CAPS)),
            "end_stroke_cap": FieldRule(("style", "endStrokeCap"), one_of(STROKE_CAPS)),
            "caption": FieldRule(("captions", 0, "content")),
            "caption_position": FieldRule(("captions", 0, "position"), percentage),
        },
        required=("start_item_id", "end_item_id"),
        depends={"caption_position": "caption"},
    ),
}


def get_schema(kind: str) -> ItemSchema:
    schema = ITEM_SCHEMAS.get(kind)
    if schema is None:
        raise ValidationError(
            "kind",
            f"one of {', '.join(ITEM_SCHEMAS)}",
            f"Unsupported item kind {kind!r}",
        )
    return schema


def _assign(payload: dict[str, Any], path: tuple[PathKey, ...], value: Any) -> None:
    container: Any = payload
    for key, next_key in zip(path, path[1:]):
        empty: Any = [] if isinstance(next_key, int) else {}
        if isinstance(key, int):
            while len(container) <= key:
                container.append({})
            container = container[key]
        else:
            container = container.setdefault(key, empty)
    last = path[-1]
    if isinstance(last, int):
        while len(container) <= last:
            container.append(None)
    container[last] = value


def build_payload(kind: str, options: Mapping[str, Any], *, partial: bool = False) -> dict[str, Any]:
    """Normalize caller options into a Miro create/update payload.

    Args:
        kind: Item kind key of ``ITEM_SCHEMAS``.
        options: Caller-facing option values; ``None`` means "not given".
        partial: True for updates (required options are not enforced).

    Raises:
        ValidationError: For unknown options, missing required options or
            values the kind cannot encode. Raised before any network call.
    """
    schema = get_schema(kind)
    given = {name: value for name, value in options.items() if value is not None}

    unknown = sorted(set(given) - set(schema.fields))
    if unknown:
        raise ValidationError(
            unknown[0],
            f"one of {', '.join(schema.fields)}",
            f"Unsupported option {unknown[0]!r} for {kind}",
        )

    if not partial:
        for name in schema.required:
            if name not in given:
                raise ValidationError(name, "a value", f"{kind} requires {name!r}")

    for group in schema.exclusive:
        present = [name for name in group if name in given]
        if len(present) > 1:
            raise ValidationError(
                present[1],
                f"only one of {', '.join(group)}",
                f"{kind} accepts only one of {', '.join(group)}",
            )

    for name, prerequisite in schema.depends.items():
        if name in given and prerequisite not in given:
            raise ValidationError(name, f"used together with {prerequisite!r}", f"{name!r} requires {prerequisite!r}")

    payload: dict[str, Any] = {}
    for name, value in given.items():
        rule = schema.fields[name]
        _assign(payload, rule.path, rule.transform(value, name))
    return payload
