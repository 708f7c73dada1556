"""Output formatters for validation reports: plain text and JSON."""

from __future__ import annotations

import json
from typing import Any

from opencli_spec.spec.validator import ReferenceReport


def format_text(source: str, report: ReferenceReport) -> str:
    lines: list[str] = []
    status = "OK" if report.valid else "INVALID"
    lines.append(f"{source}: {status}")

    # --- Dangling references ---
    for error in report.errors:
        lines.append(f"  error: {error.ref} ({error.reason})")
        for location in error.locations:
            lines.append(f"    used at {location}")

    # --- Warnings ---
    for warning in report.warnings:
        lines.append(f"  warning: {warning}")

    n = len(report.errors)
    lines.append(f"{n} dangling reference{'s' if n != 1 else ''}, {len(report.warnings)} warning(s)")
    return "\n".join(lines)


def format_json(source: str, report: ReferenceReport) -> str:
    payload: dict[str, Any] = {"source": source, **report.model_dump(mode="json")}
    return json.dumps(payload, indent=2)
