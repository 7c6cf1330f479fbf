"""Versioned plugin interfaces and lifecycle event payloads."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal

PLUGIN_API_VERSION = "1.0"
PLUGIN_CONFIG_VERSION = 1
PLUGIN_CONFIG_ENV_VAR = "AGENTSNAP_PLUGIN_CONFIG"

LifecycleStatus = Literal["ok", "error"]
VerificationStatus = Literal["pass", "created", "updated", "mismatch", "missing"]


@dataclass(frozen=True, slots=True)
class RecordStartEvent:
    case_name: str
    snapshot_path: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RecordLoopEvent:
    case_name: str
    loop: int
    artifact: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RecordEndEvent:
    case_name: str
    status: LifecycleStatus
    loop_count: int | None = None
    error_type: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayStartEvent:
    case_name: str
    snapshot_path: str
    expected_loop_count: int
    update_snapshots: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class VerificationEvent:
    case_name: str
    scope: str
    artifact: str
    status: VerificationStatus
    diagnostic_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ReplayEndEvent:
    case_name: str
    status: LifecycleStatus
    expected_loop_count: int
    executed_loop_count: int | None = None
    error_type: str | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class LifecyclePlugin:
    """Base no-op lifecycle plugin interface (API v1.x)."""

    api_version = PLUGIN_API_VERSION
    name = "lifecycle-plugin"

    def on_record_start(self, event: RecordStartEvent) -> None:
        return None

    def on_record_loop(self, event: RecordLoopEvent) -> None:
        return None

    def on_record_end(self, event: RecordEndEvent) -> None:
        return None

    def on_replay_start(self, event: ReplayStartEvent) -> None:
        return None

    def on_verification(self, event: VerificationEvent) -> None:
        return None

    def on_replay_end(self, event: ReplayEndEvent) -> None:
        return None
