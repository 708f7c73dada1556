"""Host declarations: the structural view the engine derives from.

The engine only needs a name, optional documentation and an ordered field
list, so it is written against the ``Declaration`` protocol.  Adapters build
a ``HostDeclaration`` from the Python constructs a program actually declares:

- dataclasses, pydantic models and TypedDicts (records), including
  parametrised generics such as ``Page[User]``
- ``Enum`` subclasses (enumerations, no fields)
- plain functions (command signatures, parameters as fields)
"""

from __future__ import annotations

import dataclasses
import inspect
import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel
from pydantic.fields import FieldInfo
from pydantic_core import PydanticUndefined

from opencli_spec.derive.attributes import (
    COMMAND,
    PARAMETER,
    RESPONSE,
    SCHEMA,
    FieldAttributes,
    declaration_attributes,
    merge_attributes,
)
from opencli_spec.derive.docs import attribute_docs, declaration_doc, parse_docstring
from opencli_spec.derive.type_tree import is_generic_declaration, strip_annotated, type_name
from opencli_spec.errors import UnsupportedTypeError


class DeclarationKind(str, Enum):
    RECORD = "record"
    ENUM = "enum"
    FUNCTION = "function"


@dataclass(frozen=True)
class FieldDescriptor:
    name: str
    annotation: Any
    description: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)
    has_default: bool = False
    default: Any = None


@runtime_checkable
class Declaration(Protocol):
    name: str
    description: str | None
    fields: list[FieldDescriptor]
    source: Any


@dataclass
class HostDeclaration:
    name: str
    kind: DeclarationKind
    source: Any
    description: str | None = None
    fields: list[FieldDescriptor] = field(default_factory=list)
    members: list[Any] = field(default_factory=list)
    schema_attrs: dict[str, Any] = field(default_factory=dict)
    response_attrs: dict[str, Any] | None = None
    parameter_attrs: dict[str, Any] | None = None
    command_attrs: dict[str, Any] | None = None

    @property
    def component_name(self) -> str:
        return self.schema_attrs.get("name") or self.name


def _field_attributes(metadata: list[Any], *, declaration: str, field_name: str) -> dict[str, Any]:
    attributes: dict[str, Any] = {}
    for item in metadata:
        if isinstance(item, FieldAttributes):
            merge_attributes(attributes, item.values, declaration=declaration, field=field_name)
    return attributes


def _type_hints(obj: Any, declaration: str) -> dict[str, Any]:
    try:
        return typing.get_type_hints(obj, include_extras=True)
    except (NameError, TypeError) as exc:
        raise UnsupportedTypeError(
            f"could not resolve type annotations: {exc}", declaration=declaration
        ) from exc


def _host(obj: Any, name: str, kind: DeclarationKind, doc: str | None) -> HostDeclaration:
    parsed = parse_docstring(doc)
    return HostDeclaration(
        name=name,
        kind=kind,
        source=obj,
        description=parsed.description,
        schema_attrs=declaration_attributes(obj, SCHEMA) or {},
        response_attrs=declaration_attributes(obj, RESPONSE),
        parameter_attrs=declaration_attributes(obj, PARAMETER),
        command_attrs=declaration_attributes(obj, COMMAND),
    )


def _field_docs(obj: Any, doc: str | None) -> dict[str, str]:
    docs = dict(parse_docstring(doc).fields)
    if isinstance(obj, type):
        docs.update(attribute_docs(obj))
    return docs


def _from_dataclass(cls: type) -> HostDeclaration:
    doc = declaration_doc(cls)
    decl = _host(cls, cls.__name__, DeclarationKind.RECORD, doc)
    hints = _type_hints(cls, decl.name)
    docs = _field_docs(cls, doc)
    for f in dataclasses.fields(cls):
        annotation, metadata = strip_annotated(hints.get(f.name, f.type))
        has_default = f.default is not dataclasses.MISSING
        decl.fields.append(
            FieldDescriptor(
                name=f.name,
                annotation=annotation,
                description=docs.get(f.name),
                attributes=_field_attributes(metadata, declaration=decl.name, field_name=f.name),
                has_default=has_default or f.default_factory is not dataclasses.MISSING,
                default=f.default if has_default else None,
            )
        )
    return decl


def _model_field_attributes(info: FieldInfo) -> dict[str, Any]:
    attributes: dict[str, Any] = {}
    if info.description:
        attributes["description"] = info.description
    if info.examples:
        attributes["example"] = info.examples[0]
    if info.alias:
        attributes["rename"] = info.alias
    if info.title:
        attributes["title"] = info.title
    if getattr(info, "deprecated", None):
        attributes["deprecated"] = True
    return attributes


def _from_model(cls: type[BaseModel]) -> HostDeclaration:
    doc = declaration_doc(cls)
    decl = _host(cls, cls.__name__, DeclarationKind.RECORD, doc)
    docs = _field_docs(cls, doc)
    for name, info in cls.model_fields.items():
        annotation, metadata = strip_annotated(info.annotation)
        attributes = _field_attributes(
            [*info.metadata, *metadata], declaration=decl.name, field_name=name
        )
        merge_attributes(
            attributes, _model_field_attributes(info), declaration=decl.name, field=name
        )
        has_default = info.default is not PydanticUndefined
        decl.fields.append(
            FieldDescriptor(
                name=name,
                annotation=annotation,
                description=docs.get(name),
                attributes=attributes,
                has_default=has_default or info.default_factory is not None,
                default=info.default if has_default else None,
            )
        )
    return decl


def _from_typeddict(cls: type) -> HostDeclaration:
    doc = declaration_doc(cls)
    decl = _host(cls, cls.__name__, DeclarationKind.RECORD, doc)
    hints = _type_hints(cls, decl.name)
    docs = _field_docs(cls, doc)
    optional_keys = getattr(cls, "__optional_keys__", frozenset())
    for name, hint in hints.items():
        annotation, metadata = strip_annotated(hint)
        decl.fields.append(
            FieldDescriptor(
                name=name,
                annotation=annotation,
                description=docs.get(name),
                attributes=_field_attributes(metadata, declaration=decl.name, field_name=name),
                has_default=name in optional_keys,
            )
        )
    return decl


def _from_enum(cls: type[Enum]) -> HostDeclaration:
    decl = _host(cls, cls.__name__, DeclarationKind.ENUM, declaration_doc(cls))
    decl.members = list(cls)
    return decl


def _substitute(tp: Any, bindings: dict[Any, Any]) -> Any:
    if isinstance(tp, typing.TypeVar):
        return bindings.get(tp, tp)
    params = getattr(tp, "__parameters__", ())
    if params:
        return tp[tuple(bindings.get(p, p) for p in params)]
    return tp


def _from_generic(alias: Any) -> HostDeclaration:
    """A parametrised generic record, with its type variables bound to the arguments.

    The component name carries the arguments (``Page[User]``) so every
    parametrisation is its own component.
    """
    origin = typing.get_origin(alias)
    if dataclasses.is_dataclass(origin):
        decl = _from_dataclass(origin)
    elif typing.is_typeddict(origin):
        decl = _from_typeddict(origin)
    else:
        raise UnsupportedTypeError(
            "only dataclasses and TypedDicts can be parametrised this way",
            declaration=type_name(alias),
        )
    params = getattr(origin, "__parameters__", ())
    args = typing.get_args(alias)
    if len(params) != len(args):
        raise UnsupportedTypeError(
            f"expected {len(params)} type argument(s), got {len(args)}", declaration=decl.name
        )
    bindings = dict(zip(params, args))
    decl.fields = [
        dataclasses.replace(f, annotation=_substitute(f.annotation, bindings)) for f in decl.fields
    ]
    arguments = ", ".join(type_name(arg) for arg in args)
    decl.name = f"{decl.name}[{arguments}]"
    decl.source = alias
    renamed = decl.schema_attrs.get("name")
    if renamed:
        decl.schema_attrs = {**decl.schema_attrs, "name": f"{renamed}[{arguments}]"}
    return decl


def _from_function(func: Any) -> HostDeclaration:
    name = getattr(func, "__name__", repr(func))
    doc = inspect.getdoc(func)
    decl = _host(func, name, DeclarationKind.FUNCTION, doc)
    hints = _type_hints(func, name)
    docs = parse_docstring(doc).fields

    for index, param in enumerate(inspect.signature(func).parameters.values()):
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise UnsupportedTypeError(
                "variadic parameters cannot be described", declaration=name, field=param.name
            )
        if index == 0 and param.name in ("self", "cls"):
            raise UnsupportedTypeError(
                "unbound methods cannot be commands; pass a function or a bound method",
                declaration=name,
                field=param.name,
            )
        if param.name not in hints:
            raise UnsupportedTypeError(
                "parameter has no type annotation", declaration=name, field=param.name
            )
        annotation, metadata = strip_annotated(hints[param.name])
        has_default = param.default is not param.empty
        decl.fields.append(
            FieldDescriptor(
                name=param.name,
                annotation=annotation,
                description=docs.get(param.name),
                attributes=_field_attributes(metadata, declaration=name, field_name=param.name),
                has_default=has_default,
                default=param.default if has_default else None,
            )
        )
    return decl


def declaration_for(obj: Any) -> HostDeclaration | Declaration:
    """Build the structural view of a host declaration.

    Objects that already satisfy ``Declaration`` are passed through, so a
    descriptor assembled by hand (from an IDL file, say) derives the same way.
    Such descriptors may also stand in for a type in another descriptor's
    fields, including inside containers (``list[address]``).
    """
    if isinstance(obj, type):
        if issubclass(obj, Enum):
            return _from_enum(obj)
        if issubclass(obj, BaseModel):
            return _from_model(obj)
        if dataclasses.is_dataclass(obj):
            return _from_dataclass(obj)
        if typing.is_typeddict(obj):
            return _from_typeddict(obj)
    elif is_generic_declaration(obj):
        return _from_generic(obj)
    elif inspect.isfunction(obj) or inspect.ismethod(obj):
        return _from_function(obj)
    elif isinstance(obj, Declaration):
        return obj
    raise UnsupportedTypeError(
        "not a dataclass, pydantic model, TypedDict, Enum or function",
        declaration=getattr(obj, "__name__", repr(obj)),
    )
