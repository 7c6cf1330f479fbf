"""On-disk snapshot store for agent record/replay."""

from snappack.store.exceptions import (
    MissingSnapshotError,
    SnapshotError,
    SnapshotMismatchError,
    SnapshotReadError,
    SnapshotStoreError,
)
from snappack.store.io import SnapshotStore

__all__ = [
    "MissingSnapshotError",
    "SnapshotError",
    "SnapshotMismatchError",
    "SnapshotReadError",
    "SnapshotStore",
    "SnapshotStoreError",
]
