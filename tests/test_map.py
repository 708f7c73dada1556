"""Tests for Map ordering and the ordering setting."""

from __future__ import annotations

import pickle

from pydantic import TypeAdapter

from opencli_spec.settings import ORDERING_ENV_VAR, OrderingMode, SpecSettings, get_settings, reset_settings
from opencli_spec.spec.map import Map


class TestSortedMode:
    def test_iterates_by_key(self):
        m = Map({"b": 1, "c": 2, "a": 3})
        assert list(m) == ["a", "b", "c"]

    def test_new_keys_are_placed_in_order(self):
        m = Map({"b": 1})
        m["a"] = 2
        m.insert("c", 3)
        assert list(m) == ["a", "b", "c"]

    def test_insert_returns_previous_value(self):
        m = Map()
        assert m.insert("a", 1) is None
        assert m.insert("a", 2) == 1
        assert m["a"] == 2
        assert len(m) == 1

    def test_get_missing_key(self):
        assert Map().get("nope") is None

    def test_build_order_does_not_matter(self):
        first = Map([("x", 1), ("y", 2)])
        second = Map([("y", 2), ("x", 1)])
        assert list(first.items()) == list(second.items())


class TestInsertionMode:
    def test_keeps_first_insertion_order(self):
        m = Map(ordering="insertion")
        m.insert("b", 1)
        m.insert("a", 2)
        assert list(m) == ["b", "a"]

    def test_overwrite_keeps_original_slot(self):
        m = Map([("b", 1), ("a", 2)], ordering=OrderingMode.INSERTION)
        m.insert("b", 3)
        assert list(m.items()) == [("b", 3), ("a", 2)]

    def test_copy_and_union_keep_mode(self):
        m = Map([("b", 1)], ordering="insertion")
        merged = m | {"a": 2}
        assert merged.ordering is OrderingMode.INSERTION
        assert list(merged) == ["b", "a"]
        assert list(m) == ["b"]

    def test_map_argument_passes_its_mode_on(self):
        source = Map([("b", 1), ("a", 2)], ordering="insertion")
        assert Map(source).ordering is OrderingMode.INSERTION

    def test_pickle_round_trip(self):
        m = Map([("b", 1), ("a", 2)], ordering="insertion")
        restored = pickle.loads(pickle.dumps(m))
        assert restored == m
        assert restored.ordering is OrderingMode.INSERTION
        assert list(restored) == ["b", "a"]


class TestSettings:
    def test_default_is_sorted(self):
        assert get_settings().ordering is OrderingMode.SORTED

    def test_environment_selects_insertion(self, monkeypatch):
        monkeypatch.setenv(ORDERING_ENV_VAR, "insertion")
        reset_settings()
        assert get_settings().ordering is OrderingMode.INSERTION
        assert list(Map({"b": 1, "a": 2})) == ["b", "a"]

    def test_unknown_value_falls_back_to_sorted(self, monkeypatch, caplog):
        monkeypatch.setenv(ORDERING_ENV_VAR, "random")
        with caplog.at_level("WARNING", logger="opencli_spec.settings"):
            settings = SpecSettings.from_env()
        assert settings.ordering is OrderingMode.SORTED
        assert "random" in caplog.text

    def test_explicit_ordering_wins_over_settings(self, monkeypatch):
        monkeypatch.setenv(ORDERING_ENV_VAR, "insertion")
        reset_settings()
        assert list(Map({"b": 1, "a": 2}, ordering="sorted")) == ["a", "b"]


class TestPydanticField:
    def test_validates_into_map(self):
        adapter = TypeAdapter(Map[int])
        result = adapter.validate_python({"b": 1, "a": 2})
        assert isinstance(result, Map)
        assert list(result) == ["a", "b"]

    def test_preserves_mode_of_validated_map(self):
        adapter = TypeAdapter(Map[int])
        result = adapter.validate_python(Map([("b", 1), ("a", 2)], ordering="insertion"))
        assert list(result) == ["b", "a"]

    def test_dump_follows_iteration_order(self):
        adapter = TypeAdapter(Map[int])
        dumped = adapter.dump_python(Map({"b": 1, "a": 2}), mode="json")
        assert list(dumped) == ["a", "b"]
