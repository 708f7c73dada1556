"""Documentation extraction from docstrings.

Declaration docs come from the class or function docstring.  Google-style
``Args:`` / ``Attributes:`` sections are split off and used as per-field
documentation; other sections (``Returns:``, ``Raises:`` ...) are dropped.
Fields may also carry an attribute docstring, a string literal placed right
after the field, which is read from the source with ``ast``.
"""

from __future__ import annotations

import ast
import inspect
import logging
import re
import textwrap
from dataclasses import dataclass, field, is_dataclass
from typing import Any

logger = logging.getLogger(__name__)

FIELD_SECTIONS = frozenset({"Args", "Arguments", "Attributes", "Parameters", "Params", "Fields"})
_OTHER_SECTIONS = (
    "Returns", "Return", "Yields", "Raises", "Example", "Examples",
    "Note", "Notes", "Warning", "Warnings", "See Also", "Todo",
)
_SECTION_RE = re.compile(
    r"^(%s)\s*:\s*$" % "|".join(re.escape(s) for s in (*sorted(FIELD_SECTIONS), *_OTHER_SECTIONS))
)
_FIELD_LINE_RE = re.compile(r"^(\s+)\**(\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$")

# Docstring the Enum metaclass assigns on older interpreters.
_ENUM_DEFAULT_DOC = "An enumeration."


def clean_doc(text: str | None) -> str | None:
    """Dedent and trim; blank documentation is None, never an empty string."""
    if not text:
        return None
    cleaned = inspect.cleandoc(text).strip()
    return cleaned or None


@dataclass(frozen=True)
class ParsedDoc:
    description: str | None = None
    fields: dict[str, str] = field(default_factory=dict)

    @property
    def summary(self) -> str | None:
        if self.description is None:
            return None
        return self.description.split("\n\n", 1)[0].strip() or None


def parse_docstring(text: str | None) -> ParsedDoc:
    doc = clean_doc(text)
    if doc is None:
        return ParsedDoc()

    body: list[str] = []
    fields: dict[str, list[str]] = {}
    section: str | None = None
    current: str | None = None
    field_indent = 0

    for line in doc.splitlines():
        header = _SECTION_RE.match(line)
        if header:
            section, current = header.group(1), None
            continue
        if section is None:
            body.append(line)
            continue
        if section not in FIELD_SECTIONS or not line.strip():
            continue
        match = _FIELD_LINE_RE.match(line)
        if match and (current is None or len(match.group(1)) <= field_indent):
            current = match.group(2)
            field_indent = len(match.group(1))
            fields[current] = [match.group(3).strip()]
        elif current is not None:
            fields[current].append(line.strip())

    description = "\n".join(body).strip() or None
    field_docs = {
        name: text
        for name, lines in fields.items()
        if (text := "\n".join(part for part in lines if part).strip())
    }
    return ParsedDoc(description=description, fields=field_docs)


def declaration_doc(obj: Any) -> str | None:
    """The object's own docstring, ignoring generated and inherited ones."""
    if isinstance(obj, type):
        doc = vars(obj).get("__doc__")
        if doc and is_dataclass(obj) and doc.startswith(f"{obj.__name__}("):
            return None
        if doc == _ENUM_DEFAULT_DOC:
            return None
        return doc
    return getattr(obj, "__doc__", None)


def attribute_docs(cls: type) -> dict[str, str]:
    """Attribute docstrings of a class body, keyed by attribute name."""
    try:
        source = inspect.getsource(cls)
    except (OSError, TypeError):
        logger.debug("No source available for %s; attribute docstrings skipped", cls)
        return {}
    try:
        module = ast.parse(textwrap.dedent(source))
    except SyntaxError:
        return {}

    class_def = next((node for node in module.body if isinstance(node, ast.ClassDef)), None)
    if class_def is None:
        return {}

    docs: dict[str, str] = {}
    for prev, node in zip(class_def.body, class_def.body[1:]):
        if not (
            isinstance(node, ast.Expr)
            and isinstance(node.value, ast.Constant)
            and isinstance(node.value.value, str)
        ):
            continue
        target: ast.expr | None = None
        if isinstance(prev, ast.AnnAssign):
            target = prev.target
        elif isinstance(prev, ast.Assign) and len(prev.targets) == 1:
            target = prev.targets[0]
        if isinstance(target, ast.Name):
            text = clean_doc(node.value.value)
            if text:
                docs[target.id] = text
    return docs
