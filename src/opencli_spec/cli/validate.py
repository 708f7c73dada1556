"""CLI handler for ``opencli-spec validate``.

Exit codes: 0 the document is consistent, 1 it has dangling references,
2 it could not be read or decoded.
"""

from __future__ import annotations

import sys
from argparse import Namespace
from pathlib import Path

from opencli_spec.cli.report import format_json, format_text
from opencli_spec.errors import DocumentDecodeError
from opencli_spec.spec.loader import load_document
from opencli_spec.spec.validator import validate_document

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_UNREADABLE = 2


def run_validate(args: Namespace) -> int:
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: document does not exist: {path}", file=sys.stderr)
        return EXIT_UNREADABLE

    try:
        document = load_document(path)
    except (DocumentDecodeError, ValueError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_UNREADABLE

    report = validate_document(document)
    if args.json:
        print(format_json(str(path), report))
    else:
        print(format_text(str(path), report))
    return EXIT_OK if report.valid else EXIT_INVALID
