"""Snapshot store and verification exceptions."""

from __future__ import annotations


class SnapshotError(Exception):
    """Base class for snapshot errors."""


class SnapshotStoreError(SnapshotError):
    """Snapshot store misuse or layout error."""


class SnapshotReadError(SnapshotStoreError):
    """Artifact exists but could not be parsed."""


class MissingSnapshotError(SnapshotError):
    """Expected artifact is absent and update mode is off."""

    def __init__(self, message: str, *, case_name: str, scope: str, artifact: str) -> None:
        super().__init__(message)
        self.case_name = case_name
        self.scope = scope
        self.artifact = artifact


class SnapshotMismatchError(SnapshotError):
    """Actual value does not match the recorded artifact."""

    def __init__(
        self,
        message: str,
        *,
        case_name: str,
        scope: str,
        artifact: str,
        diagnostic_path: str,
        diff: str | None = None,
    ) -> None:
        super().__init__(message)
        self.case_name = case_name
        self.scope = scope
        self.artifact = artifact
        self.diagnostic_path = diagnostic_path
        self.diff = diff
