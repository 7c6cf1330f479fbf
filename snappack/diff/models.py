"""Data models for structural snapshot diffs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(slots=True)
class ValueChange:
    """A single value delta at a JSON pointer path."""

    path: str
    expected: Any
    actual: Any

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "expected": self.expected,
            "actual": self.actual,
        }
