"""Test fixtures for opencli-spec tests."""

from __future__ import annotations

import pytest

from opencli_spec.settings import ORDERING_ENV_VAR, reset_settings
from opencli_spec.spec import (
    Array,
    Command,
    Components,
    Info,
    MediaType,
    Object,
    OpenCli,
    Parameter,
    Ref,
    RefKind,
    Response,
    SchemaFormat,
    SchemaType,
)


@pytest.fixture(autouse=True)
def _reset_settings(monkeypatch):
    """Every test starts from the default (sorted) ordering mode."""
    monkeypatch.delenv(ORDERING_ENV_VAR, raising=False)
    reset_settings()
    yield
    reset_settings()


def make_info(title: str = "files", version: str = "1.0.0") -> Info:
    return Info(title=title, version=version)


def make_user_schema() -> Object:
    """The canonical User object: id, name and an optional email."""
    return Object(
        type=SchemaType.OBJECT,
        description="A user record",
        properties={
            "id": Object.typed(SchemaType.INTEGER, SchemaFormat.INT64),
            "name": Object.typed(SchemaType.STRING),
            "email": Object.typed(SchemaType.STRING),
        },
        required=["id", "name"],
    )


def make_components() -> Components:
    return Components(
        schemas={"User": make_user_schema()},
        parameters={
            "Verbose": Parameter.flag("verbose").with_alias(["v"]),
        },
        responses={
            "UserList": Response(
                description="Users found",
                content={
                    "application/json": MediaType(
                        schema_=Array.of(Ref.new(RefKind.SCHEMAS, "User"))
                    ),
                },
            ),
        },
    )


def make_command(name: str = "users", **changes) -> Command:
    command = Command(
        name=name,
        summary=f"Manage {name}",
        parameters=[
            Parameter.argument("id", 0).with_schema(Ref.new(RefKind.SCHEMAS, "User")),
            Ref.new(RefKind.PARAMETERS, "Verbose"),
        ],
        responses={"0": Ref.new(RefKind.RESPONSES, "UserList")},
    )
    return command._replace(**changes) if changes else command


def make_document(
    commands: dict[str, Command] | None = None,
    components: Components | None = None,
    **changes,
) -> OpenCli:
    """Create a small, internally consistent document for testing."""
    document = OpenCli(
        info=make_info(),
        commands=commands if commands is not None else {"users": make_command()},
        components=components if components is not None else make_components(),
    )
    return document._replace(**changes) if changes else document
