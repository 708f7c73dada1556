"""Exception taxonomy.

Structural and derivation errors abort construction.  Referential errors
(dangling ``$ref`` pointers) are not exceptions: the validation pass returns
them as a report, see ``opencli_spec.spec.validator``.
"""

from __future__ import annotations


class OpenCliError(Exception):
    pass


class DocumentDecodeError(OpenCliError):
    """A document could not be decoded into the data model."""

    def __init__(self, source: str, problems: list[tuple[str, str]]) -> None:
        self.source = source
        self.problems = problems
        detail = "; ".join(f"{path or '<root>'}: {msg}" for path, msg in problems)
        super().__init__(f"Invalid OpenCLI document {source}: {detail}")

    @property
    def paths(self) -> list[str]:
        return [path for path, _ in self.problems]


class DerivationError(OpenCliError):
    """Derivation refused to build a fragment for a host declaration."""

    def __init__(self, message: str, *, declaration: str, field: str | None = None) -> None:
        self.declaration = declaration
        self.field = field
        where = f"{declaration}.{field}" if field else declaration
        super().__init__(f"{where}: {message}")


class UnsupportedTypeError(DerivationError):
    pass


class ConflictingAttributeError(DerivationError):
    pass


class DuplicateComponentError(OpenCliError):
    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Component {kind}/{name!r} is already registered with a different value")
