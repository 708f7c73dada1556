"""Derivation attributes: field markers and declaration decorators.

Field attributes ride on ``typing.Annotated``::

    @dataclass
    class User:
        id: Annotated[int, schema(example=7)]
        name: Annotated[str, schema(description="Display name")]

Declaration attributes are attached by decorators (``@to_schema``,
``@response``, ``@parameter``, ``@command``) and stored on the decorated
object itself.  Giving one attribute two different values, either through
two markers on the same field or through stacked decorators, raises
``ConflictingAttributeError``.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from opencli_spec.errors import ConflictingAttributeError

ATTRIBUTES_KEY = "__opencli_attributes__"

SCHEMA = "schema"
RESPONSE = "response"
PARAMETER = "parameter"
COMMAND = "command"

_T = TypeVar("_T")

_SEPARATORS = re.compile(r"[_\-\s]+")
_WORDS = re.compile(r"[A-Z]+(?![a-z])|[A-Z]?[a-z0-9]+")


def _words(name: str) -> list[str]:
    return [word for part in _SEPARATORS.split(name) for word in _WORDS.findall(part)]


class RenameRule(str, Enum):
    LOWERCASE = "lowercase"
    UPPERCASE = "UPPERCASE"
    PASCAL_CASE = "PascalCase"
    CAMEL_CASE = "camelCase"
    SNAKE_CASE = "snake_case"
    SCREAMING_SNAKE_CASE = "SCREAMING_SNAKE_CASE"
    KEBAB_CASE = "kebab-case"
    SCREAMING_KEBAB_CASE = "SCREAMING-KEBAB-CASE"

    def apply(self, name: str) -> str:
        if self is RenameRule.LOWERCASE:
            return name.lower()
        if self is RenameRule.UPPERCASE:
            return name.upper()
        words = _words(name)
        if self is RenameRule.PASCAL_CASE:
            return "".join(w[:1].upper() + w[1:].lower() for w in words)
        if self is RenameRule.CAMEL_CASE:
            pascal = RenameRule.PASCAL_CASE.apply(name)
            return pascal[:1].lower() + pascal[1:]
        if self is RenameRule.SNAKE_CASE:
            return "_".join(w.lower() for w in words)
        if self is RenameRule.SCREAMING_SNAKE_CASE:
            return "_".join(w.upper() for w in words)
        if self is RenameRule.KEBAB_CASE:
            return "-".join(w.lower() for w in words)
        return "-".join(w.upper() for w in words)


def merge_attributes(
    target: dict[str, Any],
    values: Mapping[str, Any],
    *,
    declaration: str,
    field: str | None = None,
) -> dict[str, Any]:
    """Fold ``values`` into ``target``; a key given twice must carry the same value."""
    for key, value in values.items():
        if key in target and target[key] != value:
            raise ConflictingAttributeError(
                f"attribute {key!r} given conflicting values {target[key]!r} and {value!r}",
                declaration=declaration,
                field=field,
            )
        target[key] = value
    return target


# --- field markers ---


@dataclass(frozen=True)
class FieldAttributes:
    """Explicit attributes for one field, carried as ``Annotated`` metadata."""

    values: Mapping[str, Any] = field(default_factory=dict)


def _given(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def schema(
    *,
    description: str | None = None,
    example: Any = None,
    default: Any = None,
    rename: str | None = None,
    required: bool | None = None,
    format: str | None = None,
    inline: bool | None = None,
    skip: bool | None = None,
    title: str | None = None,
    deprecated: bool | None = None,
    minimum: float | None = None,
    maximum: float | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    min_items: int | None = None,
    max_items: int | None = None,
) -> FieldAttributes:
    return FieldAttributes(_given(dict(locals())))


def param(
    *,
    in_: str | None = None,
    position: int | None = None,
    alias: list[str] | None = None,
    scope: str | None = None,
    arity: Any = None,
    description: str | None = None,
    example: Any = None,
    default: Any = None,
    rename: str | None = None,
    required: bool | None = None,
    format: str | None = None,
    inline: bool | None = None,
    skip: bool | None = None,
    deprecated: bool | None = None,
    minimum: float | None = None,
    maximum: float | None = None,
    min_length: int | None = None,
    max_length: int | None = None,
    pattern: str | None = None,
    min_items: int | None = None,
    max_items: int | None = None,
) -> FieldAttributes:
    return FieldAttributes(_given(dict(locals())))


# --- declaration decorators ---


def _owner_name(obj: Any) -> str:
    return getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None) or repr(obj)


def attach_attributes(obj: _T, kind: str, values: Mapping[str, Any]) -> _T:
    store: dict[str, dict[str, Any]] = dict(vars(obj).get(ATTRIBUTES_KEY) or {})
    merged = merge_attributes(dict(store.get(kind, {})), values, declaration=_owner_name(obj))
    store[kind] = merged
    setattr(obj, ATTRIBUTES_KEY, store)
    return obj


def declaration_attributes(obj: Any, kind: str) -> dict[str, Any] | None:
    """Attributes a decorator of ``kind`` attached to ``obj``; None when undecorated.

    Read from the object's own namespace so a subclass does not inherit its
    parent's component name or response status.
    """
    try:
        store = vars(obj).get(ATTRIBUTES_KEY)
    except TypeError:
        return None
    if not store or kind not in store:
        return None
    return dict(store[kind])


def _decorator(obj: Any, kind: str, values: dict[str, Any]) -> Any:
    given = _given(values)
    if obj is None:
        return lambda target: attach_attributes(target, kind, given)
    return attach_attributes(obj, kind, given)


def to_schema(
    obj: Any = None,
    /,
    *,
    name: str | None = None,
    description: str | None = None,
    example: Any = None,
    rename_all: str | None = None,
    title: str | None = None,
    deprecated: bool | None = None,
) -> Any:
    """Mark a class as a schema declaration, optionally renaming its component."""
    if rename_all is not None:
        rename_all = RenameRule(rename_all).value
    return _decorator(
        obj,
        SCHEMA,
        {
            "name": name,
            "description": description,
            "example": example,
            "rename_all": rename_all,
            "title": title,
            "deprecated": deprecated,
        },
    )


def response(
    obj: Any = None,
    /,
    *,
    status: str | int | None = None,
    description: str | None = None,
    media_types: list[str] | None = None,
    example: Any = None,
) -> Any:
    """Mark a class as a command response, keyed by exit-code ``status``."""
    return _decorator(
        obj,
        RESPONSE,
        {
            "status": None if status is None else str(status),
            "description": description,
            "media_types": None if media_types is None else list(media_types),
            "example": example,
        },
    )


def parameter(
    obj: Any = None,
    /,
    *,
    name: str | None = None,
    in_: str | None = None,
    scope: str | None = None,
    arity: Any = None,
    position: int | None = None,
    alias: list[str] | None = None,
    description: str | None = None,
    required: bool | None = None,
) -> Any:
    """Mark a class as a reusable parameter component."""
    return _decorator(
        obj,
        PARAMETER,
        {
            "name": name,
            "in_": in_,
            "scope": scope,
            "arity": arity,
            "position": position,
            "alias": None if alias is None else list(alias),
            "description": description,
            "required": required,
        },
    )


def command(
    obj: Callable[..., Any] | None = None,
    /,
    *,
    name: str | None = None,
    summary: str | None = None,
    description: str | None = None,
    operation_id: str | None = None,
    aliases: list[str] | None = None,
    tags: list[str] | None = None,
    responses: Any = None,
    subcommands: list[Any] | None = None,
) -> Any:
    """Mark a function as a command whose signature lists its parameters."""
    return _decorator(
        obj,
        COMMAND,
        {
            "name": name,
            "summary": summary,
            "description": description,
            "operation_id": operation_id,
            "aliases": None if aliases is None else list(aliases),
            "tags": None if tags is None else list(tags),
            "responses": responses,
            "subcommands": None if subcommands is None else list(subcommands),
        },
    )
