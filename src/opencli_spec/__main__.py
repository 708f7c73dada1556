"""CLI entry point: python -m opencli_spec <command>."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opencli-spec",
        description="OpenCLI document tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true", default=False, help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    va = sub.add_parser("validate", help="Decode a document and check its references")
    va.add_argument("file", help="Path to a .json, .yaml or .yml OpenCLI document")
    va.add_argument("--json", action="store_true", default=False, help="Output as JSON")

    ge = sub.add_parser("generate", help="Serialize a document built by Python code")
    ge.add_argument("target", help="module:attribute naming an OpenCli or a function returning one")
    ge.add_argument("--format", choices=["json", "yaml"], default="json", help="Output format")
    ge.add_argument("--output", type=Path, default=None, help="Write to a file instead of stdout")

    sc = sub.add_parser("schema", help="Print the JSON Schema of the document model")
    sc.add_argument("--output", type=Path, default=None, help="Write to a file instead of stdout")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "validate":
        from opencli_spec.cli.validate import run_validate
        sys.exit(run_validate(args))
    elif args.command == "generate":
        from opencli_spec.cli.generate import run_generate
        sys.exit(run_generate(args))
    elif args.command == "schema":
        from opencli_spec.cli.generate import run_schema
        sys.exit(run_schema(args))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
