"""CLI handlers for ``opencli-spec generate`` and ``opencli-spec schema``."""

from __future__ import annotations

import importlib
import json
import sys
from argparse import Namespace
from pathlib import Path
from typing import Any

from opencli_spec.spec.document import OpenCli


def resolve_target(target: str) -> OpenCli:
    """Import ``module:attr``; attr is an ``OpenCli`` or a zero-argument callable returning one."""
    module_name, sep, attr_path = target.partition(":")
    if not sep or not module_name or not attr_path:
        raise ValueError(f"Target must look like 'module:attribute', got {target!r}")

    obj: Any = importlib.import_module(module_name)
    for part in attr_path.split("."):
        obj = getattr(obj, part)
    if callable(obj) and not isinstance(obj, OpenCli):
        obj = obj()
    if not isinstance(obj, OpenCli):
        raise TypeError(f"{target} did not produce an OpenCli document (got {type(obj).__name__})")
    return obj


def _emit(text: str, output: Path | None, what: str) -> None:
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text + "\n", encoding="utf-8")
    print(f"Wrote {what} to {output}", file=sys.stderr)


def run_generate(args: Namespace) -> int:
    try:
        document = resolve_target(args.target)
    except (ImportError, AttributeError, ValueError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    text = document.to_yaml().rstrip("\n") if args.format == "yaml" else document.to_json()
    _emit(text, args.output, "OpenCLI document")
    return 0


def document_json_schema() -> dict[str, Any]:
    return OpenCli.model_json_schema(by_alias=True)


def run_schema(args: Namespace) -> int:
    _emit(json.dumps(document_json_schema(), indent=2), args.output, "document schema")
    return 0
