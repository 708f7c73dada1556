"""Regenerate docs/opencli.schema.json from the document model.

Same output as ``opencli-spec schema --output docs/opencli.schema.json``, for
checkouts where the console script is not installed.
"""

from __future__ import annotations

import sys
from pathlib import Path

from opencli_spec.__main__ import main as cli_main

DEFAULT_OUTPUT = Path(__file__).resolve().parents[2] / "docs" / "opencli.schema.json"


def main(argv: list[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)
    if "--output" not in args:
        args += ["--output", str(DEFAULT_OUTPUT)]
    cli_main(["schema", *args])


if __name__ == "__main__":
    main()
