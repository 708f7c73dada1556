#!/usr/bin/env python3
"""CI enforcement: fail on yaml imports outside spec/loader.py.

The document model stays format-agnostic; only the loader knows about YAML.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

ALLOWED_FILES = {Path("spec") / "loader.py"}
SRC_DIR = Path(__file__).resolve().parent.parent / "src" / "opencli_spec"


def check(src_dir: Path = SRC_DIR) -> list[str]:
    violations: list[str] = []
    for py_file in sorted(src_dir.rglob("*.py")):
        rel = py_file.relative_to(src_dir)
        if rel in ALLOWED_FILES:
            continue
        try:
            tree = ast.parse(py_file.read_text(encoding="utf-8"))
        except SyntaxError:
            continue
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if alias.name == "yaml" or alias.name.startswith("yaml."):
                        violations.append(f"{rel}:{node.lineno}: import {alias.name}")
            elif isinstance(node, ast.ImportFrom):
                if node.module and (node.module == "yaml" or node.module.startswith("yaml.")):
                    violations.append(f"{rel}:{node.lineno}: from {node.module}")
    return violations


def main() -> None:
    violations = check()
    if violations:
        print("ERROR: yaml imports found outside spec/loader.py:")
        for v in violations:
            print(f"  {v}")
        sys.exit(1)
    print("OK: no yaml imports outside spec/loader.py")


if __name__ == "__main__":
    main()
