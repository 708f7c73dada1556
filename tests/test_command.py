"""Tests for the command tree."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from conftest import make_command
from opencli_spec.spec.command import Command
from opencli_spec.spec.parameter import Parameter
from opencli_spec.spec.reference import Ref, RefKind
from opencli_spec.spec.response import Response


class TestCommand:
    def test_minimal_serialization(self):
        assert Command(name="ls").to_dict() == {"name": "ls"}

    def test_operation_id_alias(self):
        command = Command(name="ls").with_operation_id("listFiles")
        assert command.to_dict() == {"name": "ls", "operationId": "listFiles"}
        assert Command.model_validate({"operationId": "x"}).operation_id == "x"

    def test_parameters_keep_declared_order(self):
        command = (
            Command(name="cp")
            .with_parameter(Parameter.argument("source", 0))
            .with_parameter(Parameter.argument("dest", 1))
            .with_parameter(Ref.new(RefKind.PARAMETERS, "Verbose"))
        )
        names = [p.name for p in command.parameters]
        assert names == ["source", "dest", "Verbose"]

    def test_responses_keyed_by_exit_code(self):
        command = (
            Command(name="ls")
            .with_response(1, Response(description="Failure"))
            .with_response("0", Ref.new(RefKind.RESPONSES, "Listing"))
        )
        assert list(command.to_dict()["responses"]) == ["0", "1"]

    def test_tags_and_aliases_normalized(self):
        command = Command(name="ls", tags=[" files ", ""], aliases=["list", " dir "])
        assert command.tags == ["files"]
        assert command.aliases == ["list", "dir"]

    def test_extensions(self):
        command = Command(name="ls").with_extension("x-hidden", True)
        assert command.to_dict() == {"name": "ls", "x-hidden": True}

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            Command.model_validate({"name": "ls", "hidden": True})


class TestSubcommands:
    def test_with_subcommand_returns_new_tree(self):
        parent = Command(name="files")
        child = Command(name="ls")
        updated = parent.with_subcommand(child)
        assert parent.commands is None
        assert updated.commands == [child]
        assert updated.subcommand("ls") == child
        assert updated.subcommand("rm") is None

    def test_sibling_names_unique(self):
        with pytest.raises(ValidationError, match="duplicate sub-command 'ls'"):
            Command(name="files", commands=[Command(name="ls"), Command(name="ls")])

    def test_builder_enforces_uniqueness(self):
        parent = Command(name="files").with_subcommand(Command(name="ls"))
        with pytest.raises(ValidationError):
            parent.with_subcommand(Command(name="ls", summary="again"))

    def test_same_name_at_different_levels_allowed(self):
        tree = Command(
            name="files",
            commands=[Command(name="ls", commands=[Command(name="ls")])],
        )
        assert tree.subcommand("ls").subcommand("ls") is not None

    def test_subcommands_need_names(self):
        with pytest.raises(ValidationError, match="must have a name"):
            Command(name="files", commands=[Command(summary="anonymous")])

    def test_walk_yields_paths(self):
        tree = Command(
            name="files",
            commands=[
                Command(name="ls"),
                Command(name="rm", commands=[Command(name="force")]),
            ],
        )
        assert [path for path, _ in tree.walk()] == [
            "files",
            "files/ls",
            "files/rm",
            "files/rm/force",
        ]

    def test_round_trip_nested(self):
        tree = make_command().with_subcommand(make_command("groups"))
        assert Command.model_validate(tree.to_dict()) == tree
