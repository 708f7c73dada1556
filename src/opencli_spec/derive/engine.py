"""Derivation engine: host declarations -> schema, parameter, response and command fragments.

Named declarations are registered in the components registry under their own
name and referenced by ``Ref`` from every call site:

  - _owners[(kind, name)]: the host object (or hand-built descriptor) that claimed a name
  - _derived: components already built by this deriver (memoized by name)
  - _in_progress: declarations currently being derived (cycle detection)

Memoization is by name, not by structure: two different declarations are two
components even when their shapes match, and two declarations claiming the
same name are a ``ConflictingAttributeError``.  A failed top-level derivation
rolls the registry back to where it was before the call.

A ``Deriver`` is not itself thread-safe.  Derivers running in parallel may
share one ``ComponentsRegistry``, whose writes are serialized.
"""

from __future__ import annotations

import argparse
import contextlib
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from enum import Enum
from typing import Any, get_origin

from pydantic import ValidationError

from opencli_spec.derive.attributes import RenameRule
from opencli_spec.derive.declaration import DeclarationKind, FieldDescriptor, declaration_for
from opencli_spec.derive.docs import parse_docstring
from opencli_spec.derive.parser import command_from_parser
from opencli_spec.derive.type_tree import TypeShape, TypeTree, json_value, type_name
from opencli_spec.errors import (
    ConflictingAttributeError,
    DerivationError,
    UnsupportedTypeError,
)
from opencli_spec.spec.command import Command
from opencli_spec.spec.components import Components, ComponentsRegistry
from opencli_spec.spec.document import OpenCli
from opencli_spec.spec.info import EnvironmentVariable, ExternalDocs, Info, Tag
from opencli_spec.spec.map import Map
from opencli_spec.spec.parameter import Arity, Parameter, ParameterIn, ParameterScope
from opencli_spec.spec.platform import Platform
from opencli_spec.spec.reference import Ref, RefKind, RefOr
from opencli_spec.spec.response import DEFAULT_MEDIA_TYPE, MediaType, Response
from opencli_spec.spec.schema import Array, Object, Schema, SchemaFormat, SchemaType

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "0"

# Field attributes that describe a schema, mapped to the schema field they set.
_SCHEMA_OVERRIDES = {
    "title": "title",
    "example": "example",
    "deprecated": "deprecated",
    "minimum": "minimum",
    "maximum": "maximum",
    "min_length": "min_length",
    "max_length": "max_length",
    "pattern": "pattern",
    "min_items": "min_items",
    "max_items": "max_items",
}


def _attrs(decl: Any, name: str) -> dict[str, Any] | None:
    value = getattr(decl, name, None)
    return dict(value) if value is not None else None


def _kind(decl: Any) -> DeclarationKind:
    kind = getattr(decl, "kind", None)
    if kind is not None:
        return DeclarationKind(kind)
    return DeclarationKind.ENUM if getattr(decl, "members", None) else DeclarationKind.RECORD


def _component_name(decl: Any) -> str:
    return (_attrs(decl, "schema_attrs") or {}).get("name") or decl.name


def _same_owner(owner: Any, claimant: Any) -> bool:
    if owner is claimant:
        return True
    # Parametrised generics can be distinct objects per subscription; they compare by value.
    return get_origin(owner) is not None and owner == claimant


def _owner_name(owner: Any) -> str:
    return getattr(owner, "__qualname__", None) or type_name(owner)


def _enum_type(values: list[Any], declaration: str) -> SchemaType:
    if values and all(isinstance(v, str) for v in values):
        return SchemaType.STRING
    if values and all(isinstance(v, bool) for v in values):
        return SchemaType.BOOLEAN
    if values and all(isinstance(v, int) and not isinstance(v, bool) for v in values):
        return SchemaType.INTEGER
    if values and all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in values):
        return SchemaType.NUMBER
    raise UnsupportedTypeError(
        "enum values must all be strings, booleans or numbers", declaration=declaration
    )


def _coerce_arity(value: Any, declaration: str, field: str | None) -> Arity | None:
    if value is None or isinstance(value, Arity):
        return value
    try:
        if isinstance(value, int):
            return Arity.exact(value)
        if isinstance(value, tuple) and len(value) == 2:
            return Arity(min=value[0], max=value[1])
    except ValidationError as exc:
        raise DerivationError(f"invalid arity {value!r}: {exc}", declaration=declaration, field=field) from exc
    raise DerivationError(
        f"arity must be an Arity, an int or a (min, max) tuple, got {value!r}",
        declaration=declaration,
        field=field,
    )


class Deriver:
    """Derives OpenCLI fragments from host declarations into one components registry."""

    def __init__(self, registry: ComponentsRegistry | None = None) -> None:
        self.registry = registry if registry is not None else ComponentsRegistry()
        self._owners: dict[tuple[RefKind, str], Any] = {}
        self._derived: set[tuple[RefKind, str]] = set()
        self._in_progress: set[str] = set()
        self._cycle_hits: set[str] = set()
        self._depth = 0

    @property
    def components(self) -> Components | None:
        return self.registry.build()

    # --- transactions ---

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[None]:
        if self._depth == 0:
            saved = (self.registry.snapshot(), dict(self._owners), set(self._derived))
        self._depth += 1
        try:
            yield
        except Exception:
            if self._depth == 1:
                registry_state, owners, derived = saved
                self.registry.restore(registry_state)
                self._owners, self._derived = owners, derived
                self._in_progress.clear()
                self._cycle_hits.clear()
            raise
        finally:
            self._depth -= 1

    def _claim(self, kind: RefKind, name: str, decl: Any) -> None:
        # Hand-built descriptors without a host object own their names themselves.
        claimant = decl.source if decl.source is not None else decl
        owner = self._owners.get((kind, name))
        if owner is not None and not _same_owner(owner, claimant):
            raise ConflictingAttributeError(
                f"component {kind.value}/{name!r} is already bound to {_owner_name(owner)!r}",
                declaration=decl.name,
            )
        self._owners[(kind, name)] = claimant

    # --- schemas ---

    def derive_schema(self, obj: Any) -> RefOr[Schema]:
        """Register a named declaration's schema and return a ``Ref`` to it."""
        with self._transaction():
            decl = declaration_for(obj)
            if _kind(decl) is DeclarationKind.FUNCTION:
                raise UnsupportedTypeError(
                    "functions describe commands, not schemas", declaration=decl.name
                )
            return self._register_schema(decl)

    def derive_type(self, annotation: Any) -> RefOr[Schema]:
        """Schema for an arbitrary annotation such as ``list[Tag]``; named parts become refs."""
        with self._transaction():
            tree = TypeTree.from_annotation(annotation)
            return self._tree_schema(tree, declaration="<annotation>", field=None, inline=False)

    def _register_schema(self, decl: Any) -> Ref:
        name = _component_name(decl)
        self._claim(RefKind.SCHEMAS, name, decl)
        ref = Ref.new(RefKind.SCHEMAS, name)
        if name in self._in_progress:
            self._cycle_hits.add(name)
            return ref
        if (RefKind.SCHEMAS, name) in self._derived:
            return ref
        schema = self._build_schema(decl, name)
        self._store_schema(name, schema)
        return ref

    def _store_schema(self, name: str, schema: Schema) -> None:
        self.registry.insert_schema(name, schema)
        self._derived.add((RefKind.SCHEMAS, name))
        self._cycle_hits.discard(name)
        logger.debug("Registered schema component %s", name)

    def _inline_schema(self, decl: Any) -> RefOr[Schema]:
        name = _component_name(decl)
        if name in self._in_progress:
            return self._register_schema(decl)
        schema = self._build_schema(decl, name)
        if name in self._cycle_hits:
            # A nested field pointed back at this declaration; the pointer needs a target.
            self._claim(RefKind.SCHEMAS, name, decl)
            self._store_schema(name, schema)
        return schema

    def _build_schema(self, decl: Any, name: str) -> Schema:
        self._in_progress.add(name)
        try:
            if _kind(decl) is DeclarationKind.ENUM:
                schema = self._enum_schema(decl)
            else:
                schema = self._record_schema(decl)
            attrs = _attrs(decl, "schema_attrs") or {}
            changes: dict[str, Any] = {}
            description = attrs.get("description") or decl.description
            if description:
                changes["description"] = description
            for key in ("title", "example", "deprecated"):
                if key in attrs:
                    changes[key] = attrs[key]
            return self._with_changes(schema, changes, decl.name, None) if changes else schema
        finally:
            self._in_progress.discard(name)

    def _enum_schema(self, decl: Any) -> Object:
        attrs = _attrs(decl, "schema_attrs") or {}
        members = list(getattr(decl, "members", []))
        if attrs.get("rename_all"):
            rule = RenameRule(attrs["rename_all"])
            values: list[Any] = [rule.apply(m.name) for m in members]
        else:
            values = [m.value if isinstance(m, Enum) else m for m in members]
        return Object(type=_enum_type(values, decl.name), enum=values)

    def _record_schema(self, decl: Any) -> Object:
        attrs = _attrs(decl, "schema_attrs") or {}
        rule = RenameRule(attrs["rename_all"]) if attrs.get("rename_all") else None
        properties: Map[RefOr[Schema]] = Map()
        required: list[str] = []
        for field in decl.fields:
            field_attrs = field.attributes
            if field_attrs.get("skip"):
                continue
            name = field_attrs.get("rename") or (rule.apply(field.name) if rule else field.name)
            if name in properties:
                raise ConflictingAttributeError(
                    f"property {name!r} is produced by more than one field",
                    declaration=decl.name,
                    field=field.name,
                )
            tree = TypeTree.from_annotation(field.annotation, declaration=decl.name, field=field.name)
            value = self._tree_schema(
                tree, declaration=decl.name, field=field.name, inline=bool(field_attrs.get("inline"))
            )
            properties.insert(name, self._field_overrides(value, field, decl.name))
            if field_attrs.get("required", not tree.optional and not field.has_default):
                required.append(name)
        return Object(
            type=SchemaType.OBJECT,
            properties=properties or None,
            required=required or None,
        )

    def _tree_schema(
        self, tree: TypeTree, *, declaration: str, field: str | None, inline: bool
    ) -> RefOr[Schema]:
        shape = tree.shape
        if shape is TypeShape.SCALAR:
            return Object.typed(tree.schema_type, tree.schema_format)
        if shape is TypeShape.LITERAL:
            return Object(type=tree.schema_type, enum=list(tree.values))
        if shape is TypeShape.ANY:
            return Object()
        if shape is TypeShape.SEQUENCE:
            items = self._tree_schema(
                tree.children[0], declaration=declaration, field=field, inline=inline
            )
            return Array.of(items)
        if shape is TypeShape.MAP:
            value_tree = tree.children[0]
            if value_tree.shape is TypeShape.ANY:
                return Object(type=SchemaType.OBJECT, additional_properties=True)
            values = self._tree_schema(value_tree, declaration=declaration, field=field, inline=inline)
            return Object(type=SchemaType.OBJECT, additional_properties=values)
        nested = declaration_for(tree.annotation)
        if inline:
            return self._inline_schema(nested)
        return self._register_schema(nested)

    def _with_changes(
        self, schema: Schema, changes: dict[str, Any], declaration: str, field: str | None
    ) -> Schema:
        allowed = type(schema).model_fields
        for key in changes:
            if key not in allowed:
                raise DerivationError(
                    f"attribute {key!r} does not apply to {type(schema).__name__} schemas",
                    declaration=declaration,
                    field=field,
                )
        try:
            return schema._replace(**changes)
        except ValidationError as exc:
            raise DerivationError(
                f"attributes produce an invalid schema: {exc}", declaration=declaration, field=field
            ) from exc

    def _field_overrides(
        self,
        value: RefOr[Schema],
        field: FieldDescriptor,
        declaration: str,
        *,
        with_description: bool = True,
    ) -> RefOr[Schema]:
        attrs = field.attributes
        if isinstance(value, Ref):
            if any(key in attrs for key in (*_SCHEMA_OVERRIDES, "description", "default", "format")):
                logger.debug(
                    "Ignoring schema attributes on %s.%s; it is a reference", declaration, field.name
                )
            return value

        changes: dict[str, Any] = {}
        if with_description:
            description = attrs.get("description") or field.description
            if description:
                changes["description"] = description
        for key, target in _SCHEMA_OVERRIDES.items():
            if key in attrs:
                changes[target] = attrs[key]
        if "format" in attrs:
            try:
                changes["format"] = SchemaFormat(attrs["format"])
            except ValueError as exc:
                raise DerivationError(
                    f"unknown format {attrs['format']!r}", declaration=declaration, field=field.name
                ) from exc

        if "default" in attrs:
            changes["default"] = attrs["default"]
        elif field.has_default and field.default is not None and isinstance(value, Object):
            ok, default = json_value(field.default)
            if ok:
                changes["default"] = default
            else:
                logger.debug("Default of %s.%s is not JSON compatible", declaration, field.name)

        if not changes:
            return value
        return self._with_changes(value, changes, declaration, field.name)

    # --- responses ---

    def derive_response(self, obj: Any) -> Ref:
        """Register a response declaration in ``components.responses``."""
        with self._transaction():
            decl = declaration_for(obj)
            if _kind(decl) is DeclarationKind.FUNCTION:
                raise UnsupportedTypeError(
                    "functions describe commands, not responses", declaration=decl.name
                )
            name = decl.name
            self._claim(RefKind.RESPONSES, name, decl)
            ref = Ref.new(RefKind.RESPONSES, name)
            if (RefKind.RESPONSES, name) in self._derived:
                return ref

            attrs = _attrs(decl, "response_attrs") or {}
            content: Map[MediaType] | None = None
            if _kind(decl) is DeclarationKind.ENUM or decl.fields:
                if _kind(decl) is DeclarationKind.ENUM:
                    body: RefOr[Schema] = self._register_schema(decl)
                else:
                    body = self._record_schema(decl)
                content = Map()
                for media_type in attrs.get("media_types") or [DEFAULT_MEDIA_TYPE]:
                    content.insert(
                        media_type, MediaType(schema_=body, example=attrs.get("example"))
                    )
            result = Response(
                description=attrs.get("description") or decl.description,
                content=content,
            )
            self.registry.insert_response(name, result)
            self._derived.add((RefKind.RESPONSES, name))
            logger.debug("Registered response component %s", name)
            return ref

    def derive_responses(self, *objs: Any) -> Map[RefOr[Response]]:
        """Responses keyed by each declaration's exit-code status."""
        with self._transaction():
            responses: Map[RefOr[Response]] = Map()
            for obj in objs:
                decl = declaration_for(obj)
                status = str((_attrs(decl, "response_attrs") or {}).get("status", DEFAULT_STATUS))
                if status in responses:
                    raise ConflictingAttributeError(
                        f"exit code {status!r} is declared by more than one response",
                        declaration=decl.name,
                    )
                responses.insert(status, self.derive_response(obj))
            return responses

    # --- parameters ---

    def derive_parameter(self, obj: Any) -> Ref:
        """Register a ``@parameter`` declaration in ``components.parameters``."""
        with self._transaction():
            decl = declaration_for(obj)
            attrs = _attrs(decl, "parameter_attrs")
            if attrs is None:
                raise DerivationError("declaration is not marked with @parameter", declaration=decl.name)
            name = decl.name
            self._claim(RefKind.PARAMETERS, name, decl)
            ref = Ref.new(RefKind.PARAMETERS, name)
            if (RefKind.PARAMETERS, name) in self._derived:
                return ref

            location = self._location(attrs, decl.name, None)
            scope = self._scope(attrs, decl.name, None)
            arity = _coerce_arity(attrs.get("arity"), decl.name, None)
            body = self._register_schema(decl)
            try:
                result = Parameter(
                    name=attrs.get("name") or name,
                    in_=location,
                    position=attrs.get("position"),
                    alias=attrs.get("alias"),
                    description=attrs.get("description") or decl.description,
                    required=attrs.get("required"),
                    scope=scope,
                    arity=arity,
                    schema_=body,
                )
            except ValidationError as exc:
                raise DerivationError(
                    f"attributes produce an invalid parameter: {exc}", declaration=decl.name
                ) from exc
            self.registry.insert_parameter(name, result)
            self._derived.add((RefKind.PARAMETERS, name))
            logger.debug("Registered parameter component %s", name)
            return ref

    def derive_parameters(self, obj: Any) -> list[RefOr[Parameter]]:
        """One inline ``Parameter`` per field; ``@parameter`` field types become refs."""
        with self._transaction():
            decl = declaration_for(obj)
            return self._field_parameters(decl)

    def _field_parameters(self, decl: Any) -> list[RefOr[Parameter]]:
        parameters: list[RefOr[Parameter]] = []
        for field in decl.fields:
            if field.attributes.get("skip"):
                continue
            parameters.append(self._field_parameter(decl, field))
        return parameters

    def _field_parameter(self, decl: Any, field: FieldDescriptor) -> RefOr[Parameter]:
        attrs = field.attributes
        tree = TypeTree.from_annotation(field.annotation, declaration=decl.name, field=field.name)
        if tree.shape is TypeShape.DECLARATION and _attrs(
            declaration_for(tree.annotation), "parameter_attrs"
        ) is not None:
            return self.derive_parameter(tree.annotation)

        value = self._tree_schema(
            tree, declaration=decl.name, field=field.name, inline=bool(attrs.get("inline"))
        )
        required = attrs.get("required", not tree.optional and not field.has_default)
        try:
            return Parameter(
                name=attrs.get("rename") or field.name,
                in_=self._location(attrs, decl.name, field.name),
                position=attrs.get("position"),
                alias=attrs.get("alias"),
                description=attrs.get("description") or field.description,
                required=required if "required" in attrs else (required or None),
                scope=self._scope(attrs, decl.name, field.name),
                arity=_coerce_arity(attrs.get("arity"), decl.name, field.name),
                schema_=self._field_overrides(value, field, decl.name, with_description=False),
            )
        except ValidationError as exc:
            raise DerivationError(
                f"attributes produce an invalid parameter: {exc}",
                declaration=decl.name,
                field=field.name,
            ) from exc

    @staticmethod
    def _location(attrs: dict[str, Any], declaration: str, field: str | None) -> ParameterIn | None:
        value = attrs.get("in_")
        if value is None:
            return None
        try:
            return ParameterIn(value)
        except ValueError as exc:
            raise DerivationError(f"unknown parameter location {value!r}", declaration=declaration, field=field) from exc

    @staticmethod
    def _scope(attrs: dict[str, Any], declaration: str, field: str | None) -> ParameterScope | None:
        value = attrs.get("scope")
        if value is None:
            return None
        try:
            return ParameterScope(value)
        except ValueError as exc:
            raise DerivationError(f"unknown parameter scope {value!r}", declaration=declaration, field=field) from exc

    # --- commands ---

    def derive_command(self, func: Callable[..., Any]) -> Command:
        """Build a ``Command`` from a function's signature, docstring and ``@command`` attributes."""
        with self._transaction():
            decl = declaration_for(func)
            if _kind(decl) is not DeclarationKind.FUNCTION:
                raise UnsupportedTypeError("commands are derived from functions", declaration=decl.name)
            attrs = _attrs(decl, "command_attrs") or {}
            parsed = parse_docstring(getattr(func, "__doc__", None))

            parameters = self._field_parameters(decl) or None
            responses = self._command_responses(attrs.get("responses"), decl.name)
            subcommands = [self._subcommand(sub) for sub in attrs.get("subcommands") or []]
            try:
                result = Command(
                    name=attrs.get("name") or decl.name.replace("_", "-"),
                    summary=attrs.get("summary") or parsed.summary,
                    description=attrs.get("description") or parsed.description,
                    operation_id=attrs.get("operation_id"),
                    aliases=attrs.get("aliases"),
                    tags=attrs.get("tags"),
                    parameters=parameters,
                    responses=responses,
                    commands=subcommands or None,
                )
            except ValidationError as exc:
                raise DerivationError(
                    f"attributes produce an invalid command: {exc}", declaration=decl.name
                ) from exc
            logger.debug("Derived command %s", result.name)
            return result

    def _command_responses(self, responses: Any, declaration: str) -> Map[RefOr[Response]] | None:
        if responses is None:
            return None
        if isinstance(responses, Mapping):
            result: Map[RefOr[Response]] = Map()
            for status, value in responses.items():
                if not isinstance(value, (Ref, Response)):
                    value = self.derive_response(value)
                result.insert(str(status), value)
            return result or None
        if isinstance(responses, Iterable) and not isinstance(responses, (str, bytes)):
            return self.derive_responses(*responses) or None
        raise DerivationError(
            "responses must be a mapping or a list of response declarations",
            declaration=declaration,
        )

    def derive_parser(self, parser: argparse.ArgumentParser, *, name: str | None = None) -> Command:
        """Build a ``Command`` tree from a program's ``argparse`` parser."""
        result = command_from_parser(parser, name=name)
        logger.debug("Derived command %s from its argument parser", result.name)
        return result

    def _subcommand(self, value: Any) -> Command:
        if isinstance(value, Command):
            return value
        if isinstance(value, argparse.ArgumentParser):
            return self.derive_parser(value)
        return self.derive_command(value)

    # --- documents ---

    def document(
        self,
        info: Info,
        commands: Mapping[str, Any] | Iterable[Any],
        *,
        tags: list[Tag] | None = None,
        platforms: list[Platform] | None = None,
        environment: list[EnvironmentVariable] | None = None,
        external_docs: ExternalDocs | None = None,
        extensions: Mapping[str, Any] | None = None,
    ) -> OpenCli:
        """Assemble an ``OpenCli`` with every component derived so far attached."""
        with self._transaction():
            table: Map[Command] = Map()
            items = commands.items() if isinstance(commands, Mapping) else ((None, c) for c in commands)
            for path, value in items:
                command = self._subcommand(value)
                key = path or command.name
                if not key:
                    raise DerivationError(
                        "top-level commands need a name or an explicit path",
                        declaration="<document>",
                    )
                table.insert(key, command)

        return OpenCli(
            info=info,
            commands=table,
            components=self.components,
            tags=tags,
            platforms=platforms,
            environment=environment,
            external_docs=external_docs,
            **dict(extensions or {}),
        )
