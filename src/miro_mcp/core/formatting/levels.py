"""Verbosity filtering for Miro entities.

Levels form a strict ordering ``minimal < standard < full``: every leaf field
present at a lower level is present, with the same value, at every higher
level. The same ``filter_entity`` is used for single items, list pages,
search results and whole-board aggregations.

Field sets:
    minimal:  id, type, position{x,y}, geometry{width,height}, primary content
              (``data`` restricted to the kind's primary fields; connector
              endpoint ids; board name)
    standard: minimal + style + parent.id (links stripped) + connector
              shape/captions + board description
    full:     the entity unmodified (audit fields and hyperlinks included)
"""

import copy
from enum import Enum
from typing import Any, Iterable, Mapping, Union

from miro_mcp.core.errors import ValidationError


class FormatLevel(str, Enum):
    """Field-visibility level for returned entities."""

    MINIMAL = "minimal"
    STANDARD = "standard"
    FULL = "full"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: Union[str, "FormatLevel", None]) -> "FormatLevel":
        if value is None:
            return cls.MINIMAL
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(
                "format",
                "one of minimal, standard, full",
                f"Unknown format level {value!r}",
            ) from None


_RANKS = {FormatLevel.MINIMAL: 0, FormatLevel.STANDARD: 1, FormatLevel.FULL: 2}

# Primary ``data`` fields per item kind
PRIMARY_DATA_FIELDS: dict[str, tuple[str, ...]] = {
    "sticky_note": ("content",),
    "shape": ("content", "shape"),
    "text": ("content",),
    "frame": ("title",),
    "card": ("title",),
    "app_card": ("title",),
    "document": ("title",),
    "image": ("title",),
    "embed": ("url",),
}
_DEFAULT_PRIMARY = ("content", "title")

_CONNECTOR_ENDPOINTS = ("startItem", "endItem")


def _pick(source: Any, keys: Iterable[str]) -> dict[str, Any]:
    if not isinstance(source, Mapping):
        return {}
    return {key: copy.deepcopy(source[key]) for key in keys if key in source}


def _minimal(entity: Mapping[str, Any]) -> dict[str, Any]:
    kind = entity.get("type")
    result: dict[str, Any] = _pick(entity, ("id", "type"))

    position = _pick(entity.get("position"), ("x", "y"))
    if position:
        result["position"] = position
    geometry = _pick(entity.get("geometry"), ("width", "height"))
    if geometry:
        result["geometry"] = geometry

    data = _pick(entity.get("data"), PRIMARY_DATA_FIELDS.get(kind, _DEFAULT_PRIMARY))
    if data:
        result["data"] = data

    for endpoint in _CONNECTOR_ENDPOINTS:
        ref = _pick(entity.get(endpoint), ("id",))
        if ref:
            result[endpoint] = ref

    if kind == "board" and "name" in entity:
        result["name"] = entity["name"]
    return result


def _standard(entity: Mapping[str, Any]) -> dict[str, Any]:
    result = _minimal(entity)
    if "style" in entity:
        result["style"] = copy.deepcopy(entity["style"])
    parent = _pick(entity.get("parent"), ("id",))
    if parent:
        result["parent"] = parent
    if entity.get("type") == "connector":
        result.update(_pick(entity, ("shape", "captions")))
    if entity.get("type") == "board" and "description" in entity:
        result["description"] = entity["description"]
    return result


def filter_entity(entity: Mapping[str, Any], level: Union[str, FormatLevel, None] = FormatLevel.MINIMAL) -> dict[str, Any]:
    """Project one entity onto the fields visible at *level*."""
    level = FormatLevel.parse(level)
    if level is FormatLevel.FULL:
        return copy.deepcopy(dict(entity))
    if level is FormatLevel.STANDARD:
        return _standard(entity)
    return _minimal(entity)


def filter_entities(
    entities: Iterable[Mapping[str, Any]],
    level: Union[str, FormatLevel, None] = FormatLevel.MINIMAL,
) -> list[dict[str, Any]]:
    level = FormatLevel.parse(level)
    return [filter_entity(entity, level) for entity in entities]


def filter_groups(
    groups: Mapping[str, Iterable[Mapping[str, Any]]],
    level: Union[str, FormatLevel, None] = FormatLevel.MINIMAL,
) -> dict[str, list[dict[str, Any]]]:
    """Filter a kind -> entities aggregation (whole-board sync)."""
    level = FormatLevel.parse(level)
    return {kind: filter_entities(entities, level) for kind, entities in groups.items()}
