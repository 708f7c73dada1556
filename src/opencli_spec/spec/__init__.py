from opencli_spec.spec.command import Command, Commands
from opencli_spec.spec.components import Components, ComponentsRegistry
from opencli_spec.spec.document import OPENCLI_VERSION, OpenCli
from opencli_spec.spec.info import Contact, EnvironmentVariable, ExternalDocs, Info, License, Tag
from opencli_spec.spec.loader import dump_document, load_document, load_document_directory
from opencli_spec.spec.map import Map
from opencli_spec.spec.parameter import Arity, Parameter, ParameterIn, ParameterScope
from opencli_spec.spec.platform import Architecture, Platform, PlatformName
from opencli_spec.spec.reference import Ref, RefKind, RefOr, as_ref, as_value, is_ref
from opencli_spec.spec.response import DEFAULT_MEDIA_TYPE, MediaType, Response
from opencli_spec.spec.schema import Array, Object, Schema, SchemaFormat, SchemaType
from opencli_spec.spec.validator import (
    DanglingRef,
    ReferenceReport,
    collect_refs,
    validate_document,
    validate_references,
)

__all__ = [
    "Architecture",
    "Arity",
    "Array",
    "Command",
    "Commands",
    "Components",
    "ComponentsRegistry",
    "Contact",
    "DEFAULT_MEDIA_TYPE",
    "DanglingRef",
    "EnvironmentVariable",
    "ExternalDocs",
    "Info",
    "License",
    "Map",
    "MediaType",
    "OPENCLI_VERSION",
    "Object",
    "OpenCli",
    "Parameter",
    "ParameterIn",
    "ParameterScope",
    "Platform",
    "PlatformName",
    "Ref",
    "RefKind",
    "RefOr",
    "ReferenceReport",
    "Response",
    "Schema",
    "SchemaFormat",
    "SchemaType",
    "Tag",
    "as_ref",
    "as_value",
    "collect_refs",
    "dump_document",
    "is_ref",
    "load_document",
    "load_document_directory",
    "validate_document",
    "validate_references",
]
