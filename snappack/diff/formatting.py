"""Human-readable rendering for snapshot diffs."""

from __future__ import annotations

import difflib
import json
from typing import Any

from snappack.core.canonical import pretty_json
from snappack.diff.models import ValueChange

EXPECTED_LABEL = "Created Agent Snapshot"
ACTUAL_LABEL = "Runtime Agent State"


def render_value_changes(
    changes: list[ValueChange],
    *,
    truncated: bool = False,
    max_changes: int = 8,
) -> str:
    if not changes:
        return "no value changes detected"

    lines = [f"changes: {len(changes)}{'+' if truncated else ''}"]
    for change in changes[:max_changes]:
        lines.append(
            f"  {change.path}: {_render_value(change.expected)} -> {_render_value(change.actual)}"
        )
    if truncated or len(changes) > max_changes:
        lines.append("  ... additional changes omitted")
    return "\n".join(lines)


def render_unified_diff(expected: Any, actual: Any, *, context_lines: int = 3) -> str:
    diff_lines = difflib.unified_diff(
        pretty_json(expected).splitlines(),
        pretty_json(actual).splitlines(),
        fromfile=EXPECTED_LABEL,
        tofile=ACTUAL_LABEL,
        n=context_lines,
        lineterm="",
    )
    return "\n".join(diff_lines)


def _render_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    rendered = json.dumps(value, ensure_ascii=False, sort_keys=True, default=str)
    if len(rendered) > 120:
        return rendered[:117] + "..."
    return rendered
