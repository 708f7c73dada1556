"""Command trees from ``argparse`` parsers.

A program that already declares its command line with ``argparse`` gets its
OpenCLI command tree from the parser itself:

- positionals become ``argument`` parameters, numbered in declaration order
- optionals that take no value (``store_true``, ``count``, ...) become flags
- every other optional becomes an ``option``; its first long spelling is the
  name and the remaining spellings are aliases
- ``nargs`` becomes the parameter arity and ``choices`` an enum
- sub-parsers become sub-commands, with their aliases

Arguments whose help is ``argparse.SUPPRESS`` are hidden and left out, as is
the automatic ``-h/--help``.
"""

from __future__ import annotations

import argparse
import logging

from pydantic import ValidationError

from opencli_spec.derive.docs import parse_docstring
from opencli_spec.derive.type_tree import json_value, scalar_for
from opencli_spec.errors import DerivationError
from opencli_spec.spec.command import Command
from opencli_spec.spec.parameter import Arity, Parameter, ParameterIn
from opencli_spec.spec.schema import Array, Object, Schema, SchemaFormat, SchemaType

logger = logging.getLogger(__name__)

_BOOLEAN_ACTIONS = (
    argparse._StoreTrueAction,
    argparse._StoreFalseAction,
    argparse.BooleanOptionalAction,
)


def _arity(action: argparse.Action, prog: str) -> Arity | None:
    nargs = action.nargs
    if nargs is None:
        return None
    if isinstance(nargs, int):
        return Arity.exact(nargs)
    if nargs == argparse.OPTIONAL:
        return Arity(min=0, max=1)
    if nargs in (argparse.ZERO_OR_MORE, argparse.REMAINDER):
        return Arity(min=0)
    if nargs == argparse.ONE_OR_MORE:
        return Arity(min=1)
    raise DerivationError(f"unsupported nargs {nargs!r}", declaration=prog, field=action.dest)


def _multiple(action: argparse.Action) -> bool:
    if isinstance(action, argparse._AppendAction):
        return True
    nargs = action.nargs
    if isinstance(nargs, int):
        # argparse collects any explicit count, even 1, into a list.
        return True
    return nargs in (argparse.ZERO_OR_MORE, argparse.ONE_OR_MORE, argparse.REMAINDER)


def _help(action: argparse.Action, prog: str) -> str | None:
    """The help text with ``%(default)s``-style placeholders expanded as argparse does."""
    text = action.help
    if not text or "%" not in text:
        return text
    params = dict(vars(action), prog=prog)
    for key, value in list(params.items()):
        if value is argparse.SUPPRESS:
            del params[key]
        elif hasattr(value, "__name__"):
            params[key] = value.__name__
    if params.get("choices") is not None:
        params["choices"] = ", ".join(str(choice) for choice in params["choices"])
    try:
        return text % params
    except (KeyError, TypeError, ValueError):
        return text


def _value_schema(action: argparse.Action, prog: str) -> Object:
    value_type = action.type
    if isinstance(value_type, argparse.FileType):
        schema = Object.typed(SchemaType.STRING, SchemaFormat.PATH)
    else:
        scalar = scalar_for(value_type) if value_type is not None else None
        if scalar is not None:
            schema = Object.typed(*scalar)
        else:
            # str, no type at all, or a converter function: the raw value is a string.
            schema = Object.typed(SchemaType.STRING)

    if action.choices is not None:
        ok, values = json_value(list(action.choices))
        if ok:
            schema = schema.with_enum(values)
        else:
            logger.debug("Choices of %s %s are not JSON compatible", prog, action.dest)
    return schema


def _with_default(schema: Schema, action: argparse.Action, prog: str) -> Schema:
    default = action.default
    if default is None or default is argparse.SUPPRESS or not isinstance(schema, Object):
        return schema
    ok, value = json_value(default)
    if not ok:
        logger.debug("Default of %s %s is not JSON compatible", prog, action.dest)
        return schema
    return schema.with_default(value)


def _flag(action: argparse.Action, prefix_chars: str, prog: str) -> Parameter:
    name, alias = _spellings(action, prefix_chars)
    schema: Schema | None = None
    if isinstance(action, _BOOLEAN_ACTIONS):
        schema = _with_default(Object.typed(SchemaType.BOOLEAN), action, prog)
    elif isinstance(action, argparse._CountAction):
        schema = _with_default(Object.typed(SchemaType.INTEGER, SchemaFormat.INT64), action, prog)
    return Parameter(
        name=name,
        in_=ParameterIn.FLAG,
        alias=alias or None,
        description=_help(action, prog),
        schema_=schema,
    )


def _spellings(action: argparse.Action, prefix_chars: str) -> tuple[str, list[str]]:
    spellings = [option.lstrip(prefix_chars) for option in action.option_strings]
    long_names = [s for s, option in zip(spellings, action.option_strings) if len(option) - len(s) > 1]
    name = long_names[0] if long_names else spellings[0]
    return name, [s for s in spellings if s != name]


def _option(action: argparse.Action, prefix_chars: str, prog: str) -> Parameter:
    name, alias = _spellings(action, prefix_chars)
    value = _value_schema(action, prog)
    schema: Schema = Array.of(value) if _multiple(action) else _with_default(value, action, prog)
    return Parameter(
        name=name,
        in_=ParameterIn.OPTION,
        alias=alias or None,
        description=_help(action, prog),
        required=bool(action.required),
        arity=_arity(action, prog),
        schema_=schema,
    )


def _argument(action: argparse.Action, position: int, prog: str) -> Parameter:
    value = _value_schema(action, prog)
    schema: Schema = Array.of(value) if _multiple(action) else _with_default(value, action, prog)
    required = action.nargs not in (argparse.OPTIONAL, argparse.ZERO_OR_MORE, argparse.REMAINDER)
    return Parameter(
        name=action.dest,
        in_=ParameterIn.ARGUMENT,
        position=position,
        description=_help(action, prog),
        required=required,
        arity=_arity(action, prog),
        schema_=schema,
    )


def _subcommands(action: argparse._SubParsersAction, prog: str) -> list[Command]:
    help_by_name = {choice.dest: choice.help for choice in action._choices_actions}
    names: dict[int, list[str]] = {}
    parsers: dict[int, argparse.ArgumentParser] = {}
    # add_parser registers the name first, then each alias, all mapping to one parser.
    for name, subparser in action.choices.items():
        names.setdefault(id(subparser), []).append(name)
        parsers[id(subparser)] = subparser

    commands = []
    for key, (name, *aliases) in names.items():
        command = command_from_parser(
            parsers[key], name=name, summary=help_by_name.get(name), aliases=aliases
        )
        commands.append(command)
    logger.debug("%s: %d sub-command(s)", prog, len(commands))
    return commands


def command_from_parser(
    parser: argparse.ArgumentParser,
    *,
    name: str | None = None,
    summary: str | None = None,
    aliases: list[str] | None = None,
) -> Command:
    """Build a ``Command`` (with its whole sub-command tree) from an argparse parser.

    Args:
        parser: The program's parser, fully configured.
        name: Command name; defaults to the parser's ``prog``.
        summary: One-line summary; defaults to the first paragraph of the
            parser description.
        aliases: Alternative names, as given to ``add_parser(aliases=...)``.

    Raises:
        DerivationError: The parser uses an ``nargs`` value that has no
            arity, or its values do not form a valid command.
    """
    prog = name or parser.prog
    parameters: list[Parameter] = []
    commands: list[Command] = []
    position = 0
    try:
        for action in parser._actions:
            if isinstance(action, argparse._HelpAction) or action.help is argparse.SUPPRESS:
                continue
            if isinstance(action, argparse._SubParsersAction):
                commands.extend(_subcommands(action, prog))
            elif not action.option_strings:
                parameters.append(_argument(action, position, prog))
                position += 1
            elif action.nargs == 0:
                parameters.append(_flag(action, parser.prefix_chars, prog))
            else:
                parameters.append(_option(action, parser.prefix_chars, prog))

        parsed = parse_docstring(parser.description)
        return Command(
            name=prog,
            summary=summary or parsed.summary,
            description=parsed.description,
            aliases=aliases or None,
            parameters=parameters or None,
            commands=commands or None,
        )
    except ValidationError as exc:
        raise DerivationError(f"parser produces an invalid command: {exc}", declaration=prog) from exc
