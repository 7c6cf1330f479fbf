"""Replay mode: serve recorded responses and verify a live agent run."""

from snappack.replay.client import MockLLMClient
from snappack.replay.exceptions import LoopCountMismatchError, ReplayError, SnapshotSetupError
from snappack.replay.mocker import LLMMocker, MockerState
from snappack.replay.stream import StreamingChunkSequence
from snappack.replay.verify import verify_artifact

__all__ = [
    "LLMMocker",
    "LoopCountMismatchError",
    "MockLLMClient",
    "MockerState",
    "ReplayError",
    "SnapshotSetupError",
    "StreamingChunkSequence",
    "verify_artifact",
]
