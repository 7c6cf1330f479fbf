"""Stable JSON serialization used to decide snapshot equality."""

from __future__ import annotations

import json
import math
from typing import Any


def canonicalize(value: Any) -> Any:
    """Return a JSON-compatible copy of ``value`` with sorted object keys.

    Arrays keep positional order and scalars are kept as they are, so two
    values that serialize differently are never folded together. NaN and
    infinity become ``None``, as ``JSON.stringify`` renders them.
    """
    if isinstance(value, dict):
        return {
            str(key): canonicalize(value[key])
            for key in sorted(value.keys(), key=lambda raw: str(raw))
        }

    if isinstance(value, (list, tuple)):
        return [canonicalize(item) for item in value]

    if isinstance(value, float) and not math.isfinite(value):
        return None

    return value


def canonical_json(value: Any) -> str:
    """Serialize a value to stable canonical JSON."""
    return json.dumps(
        canonicalize(value),
        ensure_ascii=False,
        separators=(",", ":"),
        sort_keys=True,
        allow_nan=False,
    )


def pretty_json(value: Any) -> str:
    """Render canonical JSON for humans (used by diffs and diagnostics)."""
    return json.dumps(
        canonicalize(value),
        ensure_ascii=False,
        indent=2,
        sort_keys=True,
        allow_nan=False,
    )
