"""Core models and deterministic primitives for agent snapshots."""

from snappack.core.canonical import canonical_json, canonicalize, pretty_json
from snappack.core.models import (
    RunMeta,
    SnapshotGenerationResult,
    SnapshotRunResult,
    StreamPull,
    VerificationResult,
)
from snappack.core.types import (
    ARTIFACT_FILENAMES,
    ARTIFACT_KINDS,
    INITIAL_SCOPE,
    ArtifactKind,
    LoopScope,
    scope_label,
)

__all__ = [
    "ARTIFACT_FILENAMES",
    "ARTIFACT_KINDS",
    "INITIAL_SCOPE",
    "ArtifactKind",
    "LoopScope",
    "RunMeta",
    "SnapshotGenerationResult",
    "SnapshotRunResult",
    "StreamPull",
    "VerificationResult",
    "canonical_json",
    "canonicalize",
    "pretty_json",
    "scope_label",
]
