"""Tests for Components and ComponentsRegistry."""

from __future__ import annotations

import threading

import pytest

from conftest import make_components, make_user_schema
from opencli_spec.errors import DuplicateComponentError
from opencli_spec.spec.components import Components, ComponentsRegistry
from opencli_spec.spec.parameter import Parameter
from opencli_spec.spec.reference import Ref, RefKind
from opencli_spec.spec.response import Response
from opencli_spec.spec.schema import Object, SchemaType


class TestComponents:
    def test_accessors(self):
        components = make_components()
        assert components.schema("User") == make_user_schema()
        assert components.parameter("Verbose") == Parameter.flag("verbose").with_alias(["v"])
        assert components.response("UserList").description == "Users found"
        assert components.schema("Missing") is None

    def test_builders_upsert(self):
        components = Components().with_schema("Id", Object.typed(SchemaType.INTEGER))
        replaced = components.with_schema("Id", Object.typed(SchemaType.STRING))
        assert components.schema("Id") == Object.typed(SchemaType.INTEGER)
        assert replaced.schema("Id") == Object.typed(SchemaType.STRING)
        assert len(replaced.schemas) == 1

    def test_component_may_alias_another(self):
        components = Components().with_schema("Person", Ref.new(RefKind.SCHEMAS, "User"))
        assert components.to_dict() == {
            "schemas": {"Person": {"$ref": "#/components/schemas/User"}}
        }

    def test_resolve(self):
        components = make_components()
        assert components.resolve(Ref.new(RefKind.SCHEMAS, "User")) == make_user_schema()
        assert components.resolve(Ref.new(RefKind.RESPONSES, "User")) is None
        assert components.resolve(Ref.model_validate({"$ref": "User"})) is None

    def test_empty_tables_omitted(self):
        assert Components().to_dict() == {}


class TestComponentsRegistry:
    def test_insert_returns_previous(self):
        registry = ComponentsRegistry()
        assert registry.insert_schema("Id", Object.typed(SchemaType.INTEGER)) is None
        previous = registry.insert_schema("Id", Object.typed(SchemaType.STRING))
        assert previous == Object.typed(SchemaType.INTEGER)
        assert registry.schema("Id") == Object.typed(SchemaType.STRING)

    def test_overwrite_with_different_value_is_logged(self, caplog):
        registry = ComponentsRegistry()
        registry.insert_response("Ok", Response(description="first"))
        with caplog.at_level("WARNING", logger="opencli_spec.spec.components"):
            registry.insert_response("Ok", Response(description="second"))
        assert "responses/Ok" in caplog.text

    def test_rewriting_identical_value_is_silent(self, caplog):
        registry = ComponentsRegistry()
        registry.insert_schema("Id", Object.typed(SchemaType.INTEGER))
        with caplog.at_level("WARNING", logger="opencli_spec.spec.components"):
            registry.insert_schema("Id", Object.typed(SchemaType.INTEGER))
        assert caplog.records == []

    def test_strict_mode_rejects_overwrite(self):
        registry = ComponentsRegistry(strict=True)
        registry.insert_schema("Id", Object.typed(SchemaType.INTEGER))
        registry.insert_schema("Id", Object.typed(SchemaType.INTEGER))
        with pytest.raises(DuplicateComponentError, match="schemas/'Id'"):
            registry.insert_schema("Id", Object.typed(SchemaType.STRING))

    def test_tables_are_independent(self):
        registry = ComponentsRegistry()
        registry.insert_schema("Verbose", Object.typed(SchemaType.BOOLEAN))
        registry.insert_parameter("Verbose", Parameter.flag("verbose"))
        assert registry.contains(RefKind.SCHEMAS, "Verbose")
        assert registry.contains(RefKind.PARAMETERS, "Verbose")
        assert not registry.contains(RefKind.RESPONSES, "Verbose")
        assert len(registry) == 2

    def test_build_empty_is_none(self):
        assert ComponentsRegistry().build() is None

    def test_build_omits_empty_tables(self):
        registry = ComponentsRegistry()
        registry.insert_schema("User", make_user_schema())
        components = registry.build()
        assert components.schemas["User"] == make_user_schema()
        assert components.parameters is None
        assert components.responses is None

    def test_names_sorted(self):
        registry = ComponentsRegistry()
        for name in ("b", "c", "a"):
            registry.insert_schema(name, Object())
        assert registry.names(RefKind.SCHEMAS) == ["a", "b", "c"]

    def test_insertion_ordering(self):
        registry = ComponentsRegistry(ordering="insertion")
        for name in ("b", "c", "a"):
            registry.insert_schema(name, Object())
        assert registry.names(RefKind.SCHEMAS) == ["b", "c", "a"]

    def test_snapshot_restore(self):
        registry = ComponentsRegistry()
        registry.insert_schema("Keep", Object())
        snapshot = registry.snapshot()
        registry.insert_schema("Drop", Object())
        registry.remove(RefKind.SCHEMAS, "Keep")
        registry.restore(snapshot)
        assert registry.names(RefKind.SCHEMAS) == ["Keep"]

    def test_from_components(self):
        registry = ComponentsRegistry.from_components(make_components())
        assert registry.build() == make_components()

    def test_concurrent_writers(self):
        registry = ComponentsRegistry()

        def writer(prefix: str) -> None:
            for i in range(200):
                registry.insert_schema(f"{prefix}{i}", Object.typed(SchemaType.INTEGER))

        threads = [threading.Thread(target=writer, args=(p,)) for p in "abcd"]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(registry) == 800
