"""Stable public API surface for agentsnap.

This module is the supported import path for library users.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from snappack.config import (
    AgentSnapshotOptions,
    ReplayRunConfig,
    VerificationOptions,
    load_replay_config_from_file,
)
from snappack.core.models import SnapshotGenerationResult, SnapshotRunResult, VerificationResult
from snappack.diff import compare
from snappack.hooks import SnapshotAgent
from snappack.normalize import CustomNormalizer, FieldRule, IgnoreRule, NormalizerConfig
from snappack.replay import LoopCountMismatchError, SnapshotSetupError
from snappack.runner import AgentSnapshotRunner, CaseConfig, SnapshotCase
from snappack.snapshot import AgentSnapshot
from snappack.store import MissingSnapshotError, SnapshotError, SnapshotMismatchError

__version__ = "0.1.0"


async def generate(
    agent: SnapshotAgent,
    run_options: dict[str, Any],
    *,
    snapshot_path: str | Path,
    normalizer_config: NormalizerConfig | None = None,
) -> SnapshotGenerationResult:
    """Record one agent run into the case directory ``snapshot_path``.

    Args:
        agent: Agent exposing the five lifecycle callback slots.
        run_options: Options passed to ``agent.run`` (``input``, ``stream``).
        snapshot_path: Case directory; its parent is the fixtures root.
        normalizer_config: Extra normalization rules kept with the snapshot.

    Returns:
        Generation result with loop count, response and final events.
    """
    snapshot = AgentSnapshot(
        agent,
        AgentSnapshotOptions(
            snapshot_path=snapshot_path,
            update_snapshots=True,
            normalizer_config=normalizer_config,
        ),
    )
    return await snapshot.generate(run_options)


async def replay(
    agent: SnapshotAgent,
    run_options: dict[str, Any],
    *,
    snapshot_path: str | Path,
    update_snapshots: bool = False,
    normalizer_config: NormalizerConfig | None = None,
    verification: VerificationOptions | None = None,
) -> SnapshotRunResult:
    """Replay an agent against a recorded case and verify every loop.

    Args:
        agent: Agent exposing the five lifecycle callback slots.
        run_options: Options passed to ``agent.run``.
        snapshot_path: Recorded case directory.
        update_snapshots: Overwrite mismatching or missing artifacts instead of failing.
        normalizer_config: Extra normalization rules for comparisons.
        verification: Toggles for request and event stream verification.

    Returns:
        Run result with response, final events and loop count.

    Raises:
        MissingSnapshotError: If an expected artifact is absent.
        SnapshotMismatchError: If a request or event stream differs.
        LoopCountMismatchError: If the agent ran a different number of loops.
    """
    snapshot = AgentSnapshot(
        agent,
        AgentSnapshotOptions(
            snapshot_path=snapshot_path,
            normalizer_config=normalizer_config,
            verification=verification or VerificationOptions(),
        ),
    )
    return await snapshot.replay(
        run_options,
        ReplayRunConfig(update_snapshots=update_snapshots),
    )


__all__ = [
    "__version__",
    "AgentSnapshot",
    "AgentSnapshotOptions",
    "AgentSnapshotRunner",
    "CaseConfig",
    "CustomNormalizer",
    "FieldRule",
    "IgnoreRule",
    "LoopCountMismatchError",
    "MissingSnapshotError",
    "NormalizerConfig",
    "ReplayRunConfig",
    "SnapshotCase",
    "SnapshotError",
    "SnapshotGenerationResult",
    "SnapshotMismatchError",
    "SnapshotRunResult",
    "SnapshotSetupError",
    "VerificationOptions",
    "VerificationResult",
    "compare",
    "generate",
    "load_replay_config_from_file",
    "replay",
]
