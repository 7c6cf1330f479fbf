"""Replay-mode exceptions."""

from __future__ import annotations

from snappack.store.exceptions import SnapshotError


class ReplayError(SnapshotError):
    """Base class for replay errors."""


class SnapshotSetupError(ReplayError):
    """Replay machinery used before setup, or the case directory is missing."""


class LoopCountMismatchError(ReplayError):
    """The agent executed a different number of loops than were recorded."""

    def __init__(self, *, case_name: str, expected: int, executed: int) -> None:
        super().__init__(
            f"Loop count mismatch: Agent executed {executed} loops, "
            f"but fixture has {expected} loop directories (case '{case_name}')"
        )
        self.case_name = case_name
        self.expected = expected
        self.executed = executed
