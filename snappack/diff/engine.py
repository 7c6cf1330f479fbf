"""Structural diff over normalized JSON trees."""

from __future__ import annotations

from typing import Any

from snappack.diff.models import ValueChange

MISSING = "<MISSING>"
_MISSING = object()


def collect_value_changes(
    expected: Any,
    actual: Any,
    *,
    max_changes: int = 32,
) -> tuple[list[ValueChange], bool]:
    """Collect value changes between two trees.

    Arrays are compared by position. Returns the changes and whether the list
    was truncated at ``max_changes``.
    """
    changes: list[ValueChange] = []
    truncated = _collect(expected, actual, path="", out=changes, max_changes=max(1, max_changes))
    return changes, truncated


def _collect(
    expected: Any,
    actual: Any,
    *,
    path: str,
    out: list[ValueChange],
    max_changes: int,
) -> bool:
    if len(out) >= max_changes:
        return True

    if expected is _MISSING or actual is _MISSING:
        out.append(
            ValueChange(
                path=path or "/",
                expected=MISSING if expected is _MISSING else expected,
                actual=MISSING if actual is _MISSING else actual,
            )
        )
        return len(out) >= max_changes

    if type(expected) is not type(actual):
        out.append(ValueChange(path=path or "/", expected=expected, actual=actual))
        return len(out) >= max_changes

    if isinstance(expected, dict):
        truncated = False
        keys = sorted(set(expected.keys()) | set(actual.keys()), key=str)
        for key in keys:
            truncated |= _collect(
                expected.get(key, _MISSING),
                actual.get(key, _MISSING),
                path=f"{path}/{_escape_json_pointer(str(key))}",
                out=out,
                max_changes=max_changes,
            )
            if len(out) >= max_changes:
                return True
        return truncated

    if isinstance(expected, list):
        truncated = False
        for idx in range(max(len(expected), len(actual))):
            truncated |= _collect(
                expected[idx] if idx < len(expected) else _MISSING,
                actual[idx] if idx < len(actual) else _MISSING,
                path=f"{path}/{idx}",
                out=out,
                max_changes=max_changes,
            )
            if len(out) >= max_changes:
                return True
        return truncated

    if expected != actual:
        out.append(ValueChange(path=path or "/", expected=expected, actual=actual))
        return len(out) >= max_changes

    return False


def _escape_json_pointer(token: str) -> str:
    return token.replace("~", "~0").replace("/", "~1")
