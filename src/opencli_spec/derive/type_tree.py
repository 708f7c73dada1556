"""Shape classification of Python type annotations.

``TypeTree.from_annotation`` turns an annotation into one of a fixed set of
shapes the engine knows how to describe.  Anything outside that set is an
``UnsupportedTypeError``; the engine never guesses an approximate schema.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import datetime
import decimal
import ipaddress
import pathlib
import types
import typing
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel

from opencli_spec.errors import UnsupportedTypeError
from opencli_spec.spec.schema import SchemaFormat, SchemaType


class TypeShape(str, Enum):
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAP = "map"
    DECLARATION = "declaration"
    LITERAL = "literal"
    ANY = "any"


# Checked in order, so bool is matched before int and datetime before date.
SCALAR_TYPES: tuple[tuple[type, SchemaType, SchemaFormat | None], ...] = (
    (bool, SchemaType.BOOLEAN, None),
    (int, SchemaType.INTEGER, SchemaFormat.INT64),
    (float, SchemaType.NUMBER, SchemaFormat.DOUBLE),
    (decimal.Decimal, SchemaType.NUMBER, None),
    (str, SchemaType.STRING, None),
    (datetime.datetime, SchemaType.STRING, SchemaFormat.DATE_TIME),
    (datetime.date, SchemaType.STRING, SchemaFormat.DATE),
    (datetime.time, SchemaType.STRING, SchemaFormat.TIME),
    (uuid.UUID, SchemaType.STRING, SchemaFormat.UUID),
    (pathlib.PurePath, SchemaType.STRING, SchemaFormat.PATH),
    (ipaddress.IPv4Address, SchemaType.STRING, SchemaFormat.IPV4),
    (ipaddress.IPv6Address, SchemaType.STRING, SchemaFormat.IPV6),
)

SEQUENCE_ORIGINS = frozenset({
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
})
MAP_ORIGINS = frozenset({
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
})

_QUALIFIERS = tuple(
    q for q in (
        getattr(typing, "Required", None),
        getattr(typing, "NotRequired", None),
        getattr(typing, "ReadOnly", None),
    )
    if q is not None
)


def scalar_for(tp: Any) -> tuple[SchemaType, SchemaFormat | None] | None:
    if not isinstance(tp, type):
        return None
    for scalar, schema_type, schema_format in SCALAR_TYPES:
        if issubclass(tp, scalar):
            return schema_type, schema_format
    return None


def _literal_type(value: Any) -> SchemaType | None:
    if isinstance(value, bool):
        return SchemaType.BOOLEAN
    if isinstance(value, int):
        return SchemaType.INTEGER
    if isinstance(value, float):
        return SchemaType.NUMBER
    if isinstance(value, str):
        return SchemaType.STRING
    return None


def json_value(value: Any) -> tuple[bool, Any]:
    """``(True, value)`` when ``value`` can be written into a document as-is."""
    if isinstance(value, Enum):
        value = value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return True, value
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            ok, converted = json_value(item)
            if not ok:
                return False, None
            items.append(converted)
        return True, items
    if isinstance(value, collections.abc.Mapping) and all(isinstance(k, str) for k in value):
        converted_map = {}
        for key, item in value.items():
            ok, converted = json_value(item)
            if not ok:
                return False, None
            converted_map[key] = converted
        return True, converted_map
    return False, None


def is_declaration_type(tp: Any) -> bool:
    """Named host declarations: dataclasses, pydantic models, TypedDicts and enums."""
    if not isinstance(tp, type):
        return False
    return (
        dataclasses.is_dataclass(tp)
        or issubclass(tp, (BaseModel, Enum))
        or typing.is_typeddict(tp)
    )


def is_descriptor(tp: Any) -> bool:
    """A hand-built declaration descriptor (see ``declaration.Declaration``) used as a type."""
    if isinstance(tp, type) or get_origin(tp) is not None:
        return False
    return all(
        hasattr(tp, attr) for attr in ("name", "description", "fields", "source")
    )


def is_generic_declaration(tp: Any) -> bool:
    """A parametrised generic record such as ``Page[User]``."""
    origin = get_origin(tp)
    return origin is not None and is_declaration_type(origin)


def type_name(tp: Any) -> str:
    """Readable name of an annotation: ``Page[User]``, ``Pair[str, int]``, ``int | None``."""
    tp, _ = strip_annotated(tp)
    if tp is type(None):
        return "None"
    if is_descriptor(tp):
        return tp.name
    origin = get_origin(tp)
    if origin is Union or isinstance(tp, types.UnionType):
        return " | ".join(type_name(arg) for arg in get_args(tp))
    if origin is Literal:
        return f"Literal[{', '.join(repr(arg) for arg in get_args(tp))}]"
    if origin is not None:
        args = ", ".join("..." if arg is Ellipsis else type_name(arg) for arg in get_args(tp))
        return f"{type_name(origin)}[{args}]"
    return getattr(tp, "__name__", repr(tp))


def strip_annotated(tp: Any) -> tuple[Any, list[Any]]:
    """Unwrap ``Annotated`` and TypedDict qualifiers, collecting metadata."""
    metadata: list[Any] = []
    while True:
        origin = get_origin(tp)
        if origin is Annotated:
            metadata.extend(tp.__metadata__)
            tp = tp.__origin__
        elif origin is not None and origin in _QUALIFIERS:
            tp = get_args(tp)[0]
        else:
            return tp, metadata


@dataclass(frozen=True)
class TypeTree:
    shape: TypeShape
    annotation: Any
    optional: bool = False
    children: tuple[TypeTree, ...] = ()
    schema_type: SchemaType | None = None
    schema_format: SchemaFormat | None = None
    values: tuple[Any, ...] = ()

    @classmethod
    def from_annotation(
        cls,
        annotation: Any,
        *,
        declaration: str = "<annotation>",
        field: str | None = None,
    ) -> TypeTree:
        def unsupported(message: str) -> UnsupportedTypeError:
            return UnsupportedTypeError(message, declaration=declaration, field=field)

        def walk(tp: Any) -> TypeTree:
            tp, _ = strip_annotated(tp)

            supertype = getattr(tp, "__supertype__", None)
            while supertype is not None:
                tp = supertype
                supertype = getattr(tp, "__supertype__", None)

            if is_descriptor(tp):
                return cls(TypeShape.DECLARATION, tp)

            if isinstance(tp, typing.TypeVar):
                raise unsupported(
                    f"unbound type variable {tp!r}; parametrise the generic declaration"
                )

            origin = get_origin(tp)
            if origin is Union or isinstance(tp, types.UnionType):
                members = [arg for arg in get_args(tp) if arg is not type(None)]
                if len(members) != 1:
                    raise unsupported(f"union {tp!r} has more than one non-None member")
                inner = walk(members[0])
                return dataclasses.replace(inner, optional=True)

            if tp is Any or tp is object:
                return cls(TypeShape.ANY, tp)

            if origin is Literal:
                raw = get_args(tp)
                values = tuple(v for v in raw if v is not None)
                optional = len(values) != len(raw)
                kinds = {_literal_type(v) for v in values}
                if not values or None in kinds or len(kinds) != 1:
                    raise unsupported(f"literal {tp!r} must list values of one scalar type")
                return cls(
                    TypeShape.LITERAL,
                    tp,
                    optional=optional,
                    schema_type=kinds.pop(),
                    values=values,
                )

            if origin in SEQUENCE_ORIGINS:
                args = get_args(tp)
                if origin is tuple:
                    if len(args) != 2 or args[1] is not Ellipsis:
                        raise unsupported(f"only homogeneous tuple[T, ...] is supported, got {tp!r}")
                    args = args[:1]
                if len(args) != 1:
                    raise unsupported(f"sequence {tp!r} needs an element type")
                return cls(TypeShape.SEQUENCE, tp, children=(walk(args[0]),))

            if origin in MAP_ORIGINS:
                args = get_args(tp)
                if len(args) != 2:
                    raise unsupported(f"mapping {tp!r} needs key and value types")
                key, _ = strip_annotated(args[0])
                if key is not str:
                    raise unsupported(f"mapping keys must be str, got {key!r}")
                return cls(TypeShape.MAP, tp, children=(walk(args[1]),))

            if is_generic_declaration(tp):
                return cls(TypeShape.DECLARATION, tp)

            if origin is not None:
                raise unsupported(f"unsupported generic type {tp!r}")

            if tp in SEQUENCE_ORIGINS or tp in MAP_ORIGINS:
                raise unsupported(f"container {tp.__name__} needs element types")

            if is_declaration_type(tp):
                return cls(TypeShape.DECLARATION, tp)

            scalar = scalar_for(tp)
            if scalar is not None:
                return cls(
                    TypeShape.SCALAR, tp, schema_type=scalar[0], schema_format=scalar[1]
                )

            raise unsupported(f"unsupported type {tp!r}")

        return walk(annotation)
