"""Tests for docstring and attribute-docstring extraction."""

from __future__ import annotations

from dataclasses import dataclass

from opencli_spec.derive.docs import attribute_docs, clean_doc, declaration_doc, parse_docstring


@dataclass
class Undocumented:
    id: int


@dataclass
class Server:
    """A server entry.

    Attributes:
        host: Host name or address.
        port: TCP port the server
            listens on.
    """

    host: str
    port: int = 22
    """Overridden by the attribute docstring."""
    region: str = "eu"


class TestCleanDoc:
    def test_blank_is_none(self):
        assert clean_doc(None) is None
        assert clean_doc("   \n  ") is None

    def test_dedents(self):
        assert clean_doc("First line.\n    Second line.\n") == "First line.\nSecond line."


class TestParseDocstring:
    def test_plain_description(self):
        parsed = parse_docstring("List users.\n\nPrints one user per line.")
        assert parsed.description == "List users.\n\nPrints one user per line."
        assert parsed.summary == "List users."
        assert parsed.fields == {}

    def test_args_section(self):
        parsed = parse_docstring(
            """Copy files.

            Args:
                source: File to copy.
                dest (str): Where to put it.
                    Created when missing.

            Returns:
                Number of bytes copied.
            """
        )
        assert parsed.description == "Copy files."
        assert parsed.fields == {
            "source": "File to copy.",
            "dest": "Where to put it.\nCreated when missing.",
        }

    def test_other_sections_dropped(self):
        parsed = parse_docstring("Run it.\n\nRaises:\n    ValueError: never.\n")
        assert parsed.description == "Run it."
        assert parsed.fields == {}

    def test_empty(self):
        parsed = parse_docstring(None)
        assert parsed.description is None
        assert parsed.summary is None


class TestDeclarationDoc:
    def test_generated_dataclass_doc_ignored(self):
        assert declaration_doc(Undocumented) is None

    def test_own_docstring(self):
        assert declaration_doc(Server).startswith("A server entry.")

    def test_function(self):
        def run() -> None:
            """Run."""

        assert declaration_doc(run) == "Run."


class TestAttributeDocs:
    def test_reads_docstring_after_field(self):
        assert attribute_docs(Server) == {"port": "Overridden by the attribute docstring."}

    def test_class_without_source(self):
        dynamic = type("Dynamic", (), {})
        assert attribute_docs(dynamic) == {}
