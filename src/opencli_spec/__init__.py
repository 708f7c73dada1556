"""opencli-spec: OpenCLI document model and schema derivation.

An OpenCLI document describes a command-line program: its commands,
parameters, responses and the schemas behind them.  Documents are built
by hand with the builder API or derived from the program's own
dataclasses, pydantic models, enums and command functions.

Public API::

    from opencli_spec import Deriver, OpenCli, Info
    from opencli_spec.derive import command, param, schema, to_schema
    from opencli_spec.spec import load_document, validate_references
"""

from opencli_spec.derive import Deriver
from opencli_spec.errors import (
    ConflictingAttributeError,
    DerivationError,
    DocumentDecodeError,
    DuplicateComponentError,
    OpenCliError,
    UnsupportedTypeError,
)
from opencli_spec.settings import OrderingMode, SpecSettings, get_settings
from opencli_spec.spec import Command, Components, ComponentsRegistry, Info, OpenCli, Ref

__all__ = [
    "Command",
    "Components",
    "ComponentsRegistry",
    "ConflictingAttributeError",
    "DerivationError",
    "Deriver",
    "DocumentDecodeError",
    "DuplicateComponentError",
    "Info",
    "OpenCli",
    "OpenCliError",
    "OrderingMode",
    "Ref",
    "SpecSettings",
    "UnsupportedTypeError",
    "get_settings",
]
__version__ = "0.1.0"
