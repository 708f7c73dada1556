from opencli_spec.derive.attributes import (
    FieldAttributes,
    RenameRule,
    command,
    param,
    parameter,
    response,
    schema,
    to_schema,
)
from opencli_spec.derive.declaration import (
    Declaration,
    DeclarationKind,
    FieldDescriptor,
    HostDeclaration,
    declaration_for,
)
from opencli_spec.derive.docs import ParsedDoc, clean_doc, parse_docstring
from opencli_spec.derive.engine import Deriver
from opencli_spec.derive.parser import command_from_parser
from opencli_spec.derive.type_tree import TypeShape, TypeTree

__all__ = [
    "Declaration",
    "DeclarationKind",
    "Deriver",
    "FieldAttributes",
    "FieldDescriptor",
    "HostDeclaration",
    "ParsedDoc",
    "RenameRule",
    "TypeShape",
    "TypeTree",
    "clean_doc",
    "command",
    "command_from_parser",
    "declaration_for",
    "param",
    "parameter",
    "parse_docstring",
    "response",
    "schema",
    "to_schema",
]
