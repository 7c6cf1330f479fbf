"""Agent collaborator contract and lifecycle hook bridge."""

from snappack.hooks.agent import (
    HOOK_SLOTS,
    EventStream,
    HookCallback,
    SnapshotAgent,
    is_streaming_options,
)
from snappack.hooks.bridge import HookBridge, HookHandlers, call_hook, maybe_await

__all__ = [
    "HOOK_SLOTS",
    "EventStream",
    "HookBridge",
    "HookCallback",
    "HookHandlers",
    "SnapshotAgent",
    "call_hook",
    "is_streaming_options",
    "maybe_await",
]
