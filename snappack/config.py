"""Snapshot options, per-replay overrides and JSON config loading."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Mapping

from snappack.normalize import (
    NormalizerConfig,
    NormalizerConfigError,
    normalizer_config_from_mapping,
)

UPDATE_SNAPSHOTS_ENV_VAR = "AGENTSNAP_UPDATE_SNAPSHOTS"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


class SnapshotConfigError(ValueError):
    """Raised when snapshot options or a replay config payload are invalid."""


@dataclass(frozen=True, slots=True)
class VerificationOptions:
    verify_llm_requests: bool = True
    verify_event_streams: bool = True

    def __post_init__(self) -> None:
        for key in ("verify_llm_requests", "verify_event_streams"):
            if not isinstance(getattr(self, key), bool):
                raise SnapshotConfigError(f"verification option '{key}' must be a boolean.")

    def to_dict(self) -> dict[str, bool]:
        return {
            "verify_llm_requests": self.verify_llm_requests,
            "verify_event_streams": self.verify_event_streams,
        }


@dataclass(slots=True)
class AgentSnapshotOptions:
    """Options for one snapshot case.

    ``snapshot_path`` is the case directory; its parent is the fixtures root.
    """

    snapshot_path: str | Path
    snapshot_name: str | None = None
    update_snapshots: bool = False
    normalizer_config: NormalizerConfig | None = None
    verification: VerificationOptions = field(default_factory=VerificationOptions)

    def __post_init__(self) -> None:
        if not str(self.snapshot_path).strip():
            raise SnapshotConfigError("snapshot_path must be non-empty.")
        self.snapshot_path = Path(self.snapshot_path)
        if not self.snapshot_path.name:
            raise SnapshotConfigError(f"snapshot_path has no case name: {self.snapshot_path}")
        if self.snapshot_name is None:
            self.snapshot_name = self.snapshot_path.name

    @property
    def case_name(self) -> str:
        return Path(self.snapshot_path).name

    @property
    def fixtures_root(self) -> Path:
        return Path(self.snapshot_path).parent


@dataclass(frozen=True, slots=True)
class ReplayRunConfig:
    """Per-replay overrides; ``None`` falls back to the snapshot options."""

    update_snapshots: bool | None = None
    normalizer_config: NormalizerConfig | None = None
    verification: VerificationOptions | None = None


@dataclass(frozen=True, slots=True)
class ResolvedReplaySettings:
    update_snapshots: bool
    normalizer_config: NormalizerConfig | None
    verification: VerificationOptions


def resolve_update_snapshots(*values: bool | None) -> bool:
    """Return True when the env var forces update mode or any value is set."""
    if os.getenv(UPDATE_SNAPSHOTS_ENV_VAR, "").strip().lower() in _TRUTHY:
        return True
    return any(bool(value) for value in values)


def resolve_replay_settings(
    options: AgentSnapshotOptions,
    config: ReplayRunConfig | None = None,
) -> ResolvedReplaySettings:
    config = config or ReplayRunConfig()
    return ResolvedReplaySettings(
        update_snapshots=resolve_update_snapshots(
            config.update_snapshots,
            options.update_snapshots,
        ),
        normalizer_config=config.normalizer_config or options.normalizer_config,
        verification=config.verification or options.verification,
    )


def replay_config_from_mapping(config: Mapping[str, Any]) -> ReplayRunConfig:
    """Create a replay run config from a JSON-like mapping."""
    supported_keys = {"update_snapshots", "verification", "normalizer"}
    unknown = sorted(set(config.keys()) - supported_keys)
    if unknown:
        raise SnapshotConfigError("Unsupported replay config keys: " + ", ".join(unknown))

    update_snapshots = config.get("update_snapshots")
    if update_snapshots is not None and not isinstance(update_snapshots, bool):
        raise SnapshotConfigError("replay config key 'update_snapshots' must be a boolean.")

    verification = None
    if "verification" in config:
        verification = _verification_from_mapping(config["verification"])

    normalizer_config = None
    if "normalizer" in config:
        raw = config["normalizer"]
        if not isinstance(raw, Mapping):
            raise SnapshotConfigError("replay config key 'normalizer' must be an object.")
        try:
            normalizer_config = normalizer_config_from_mapping(raw)
        except NormalizerConfigError as error:
            raise SnapshotConfigError(f"Invalid normalizer config: {error}") from error

    return ReplayRunConfig(
        update_snapshots=update_snapshots,
        normalizer_config=normalizer_config,
        verification=verification,
    )


def load_replay_config_from_file(path: str | Path) -> ReplayRunConfig:
    """Load a replay run config from a JSON file."""
    config_path = Path(path)
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as error:
        raise SnapshotConfigError(f"Invalid replay config JSON ({config_path}): {error}") from error

    if not isinstance(raw, dict):
        raise SnapshotConfigError(f"Replay config must be a JSON object ({config_path}).")
    return replay_config_from_mapping(raw)


def _verification_from_mapping(raw: Any) -> VerificationOptions:
    if not isinstance(raw, Mapping):
        raise SnapshotConfigError("replay config key 'verification' must be an object.")

    supported_keys = {"verify_llm_requests", "verify_event_streams"}
    unknown = sorted(set(raw.keys()) - supported_keys)
    if unknown:
        raise SnapshotConfigError("Unsupported verification keys: " + ", ".join(unknown))

    return VerificationOptions(
        verify_llm_requests=raw.get("verify_llm_requests", True),
        verify_event_streams=raw.get("verify_event_streams", True),
    )
