"""Result models shared by the recorder, mocker, and orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Outcome of comparing an expected artifact with an actual value."""

    equal: bool
    diff: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"equal": self.equal, "diff": self.diff}


@dataclass(frozen=True, slots=True)
class StreamPull:
    """A single pull from a streaming chunk sequence."""

    done: bool
    value: Any = None


@dataclass(slots=True)
class RunMeta:
    case_name: str
    execution_time_ms: int
    loop_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_name": self.case_name,
            "execution_time_ms": self.execution_time_ms,
            "loop_count": self.loop_count,
        }


@dataclass(slots=True)
class SnapshotGenerationResult:
    """Result of recording an agent run into a snapshot case."""

    snapshot_path: str
    loop_count: int
    response: Any
    events: list[dict[str, Any]] = field(default_factory=list)
    meta: RunMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshot_path": self.snapshot_path,
            "loop_count": self.loop_count,
            "event_count": len(self.events),
            "meta": self.meta.to_dict() if self.meta is not None else None,
        }


@dataclass(slots=True)
class SnapshotRunResult:
    """Result of replaying an agent against a recorded snapshot case."""

    response: Any
    events: list[dict[str, Any]] = field(default_factory=list)
    meta: RunMeta | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_count": len(self.events),
            "meta": self.meta.to_dict() if self.meta is not None else None,
        }
