"""Typed decoding of Notion page and database payloads.

Notion represents page properties as loosely-typed JSON keyed by their
human-readable names. This module decodes each property once into a closed
set of tagged variants so the gateway can work with attributes instead of
nested dictionaries. Property types the workflow does not use are kept as
``UnrecognizedProperty``.

Logical fields are found by explicit alias tables rather than by guessing,
because the property names are localized (e.g. "Entwicklung" for
"Development").

Example:
    >>> props = decode_properties(page["properties"])
    >>> status = find_property(props, STATUS_ALIASES, StatusProperty)
    >>> status.value if status else None
    '🏗 In progress'
"""

from typing import Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict

# Accepted property names per logical field
STATUS_ALIASES = ("Status",)
TYPE_ALIASES = ("Type", "Typ")
PULL_REQUEST_ALIASES = ("GitHub Pull Request", "Pull Request", "PR")
ASSIGNEE_ALIASES = ("Assignee", "Zuständig", "Assigned to")
DEVELOPMENT_ALIASES = ("Development", "Entwicklung")


class _Property(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    id: str = ""


class TitleProperty(_Property):
    kind: Literal["title"] = "title"
    text: str | None = None


class StatusProperty(_Property):
    kind: Literal["status"] = "status"
    value: str | None = None


class SelectProperty(_Property):
    kind: Literal["select"] = "select"
    value: str | None = None
    color: str | None = None


class UniqueIdProperty(_Property):
    kind: Literal["unique_id"] = "unique_id"
    prefix: str | None = None
    number: int | None = None


class RelationProperty(_Property):
    kind: Literal["relation"] = "relation"
    page_ids: tuple[str, ...] = ()


class UrlProperty(_Property):
    kind: Literal["url"] = "url"
    url: str | None = None


class PeopleProperty(_Property):
    kind: Literal["people"] = "people"
    user_ids: tuple[str, ...] = ()


class UnrecognizedProperty(_Property):
    kind: Literal["unrecognized"] = "unrecognized"
    type: str = ""


PageProperty = (
    TitleProperty
    | StatusProperty
    | SelectProperty
    | UniqueIdProperty
    | RelationProperty
    | UrlProperty
    | PeopleProperty
    | UnrecognizedProperty
)

P = TypeVar("P", bound=_Property)


def _plain_text(rich_text: list[dict[str, Any]] | None) -> str | None:
    if not rich_text:
        return None
    text = "".join(part.get("plain_text", "") for part in rich_text)
    return text or None


def decode_property(name: str, raw: dict[str, Any]) -> PageProperty:
    """Decode one page property value into its tagged variant."""
    prop_type = raw.get("type", "")
    prop_id = raw.get("id", "")

    if prop_type == "title":
        return TitleProperty(name=name, id=prop_id, text=_plain_text(raw.get("title")))
    if prop_type == "status":
        status = raw.get("status") or {}
        return StatusProperty(name=name, id=prop_id, value=status.get("name"))
    if prop_type == "select":
        select = raw.get("select") or {}
        return SelectProperty(name=name, id=prop_id, value=select.get("name"), color=select.get("color"))
    if prop_type == "unique_id":
        unique = raw.get("unique_id") or {}
        return UniqueIdProperty(name=name, id=prop_id, prefix=unique.get("prefix"), number=unique.get("number"))
    if prop_type == "relation":
        related = tuple(item["id"] for item in raw.get("relation") or [] if item.get("id"))
        return RelationProperty(name=name, id=prop_id, page_ids=related)
    if prop_type == "url":
        return UrlProperty(name=name, id=prop_id, url=raw.get("url"))
    if prop_type == "people":
        users = tuple(user["id"] for user in raw.get("people") or [] if user.get("id"))
        return PeopleProperty(name=name, id=prop_id, user_ids=users)
    return UnrecognizedProperty(name=name, id=prop_id, type=prop_type)


def decode_properties(raw_properties: dict[str, Any] | None) -> dict[str, PageProperty]:
    """Decode all properties of a page, keyed by property name."""
    return {name: decode_property(name, raw) for name, raw in (raw_properties or {}).items()}


def find_property(
    properties: dict[str, PageProperty],
    aliases: tuple[str, ...],
    kind: type[P],
) -> P | None:
    """Return the first property named by ``aliases`` that has type ``kind``."""
    for alias in aliases:
        prop = properties.get(alias)
        if isinstance(prop, kind):
            return prop
    return None


def first_of_kind(properties: dict[str, PageProperty], kind: type[P]) -> P | None:
    """Return the first property of type ``kind`` regardless of its name.

    Used for properties a database can only have one of (title, unique-id).
    """
    for prop in properties.values():
        if isinstance(prop, kind):
            return prop
    return None


class SchemaProperty(BaseModel):
    """A database schema property (type plus type-specific configuration)."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    unique_id_prefix: str | None = None
    option_colors: dict[str, str] = {}


def decode_schema(raw_properties: dict[str, Any] | None) -> dict[str, SchemaProperty]:
    """Decode the ``properties`` object of a database into schema entries."""
    schema: dict[str, SchemaProperty] = {}
    for name, raw in (raw_properties or {}).items():
        prop_type = raw.get("type", "")
        config = raw.get(prop_type) or {}
        options = (config.get("options") or []) if prop_type in ("select", "status", "multi_select") else []
        schema[name] = SchemaProperty(
            name=name,
            type=prop_type,
            unique_id_prefix=config.get("prefix") if prop_type == "unique_id" else None,
            option_colors={opt["name"]: opt.get("color", "default") for opt in options if opt.get("name")},
        )
    return schema
