"""Diff and comparison subsystem for agent snapshots."""

from snappack.diff.comparator import SnapshotComparator, compare
from snappack.diff.engine import collect_value_changes
from snappack.diff.formatting import render_unified_diff, render_value_changes
from snappack.diff.models import ValueChange

__all__ = [
    "SnapshotComparator",
    "ValueChange",
    "collect_value_changes",
    "compare",
    "render_unified_diff",
    "render_value_changes",
]
