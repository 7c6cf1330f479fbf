"""Capture mode: record a live agent run into a snapshot case."""

from snappack.capture.recorder import SnapshotRecorder

__all__ = ["SnapshotRecorder"]
