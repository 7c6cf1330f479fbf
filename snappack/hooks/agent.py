"""Collaborator contract the snapshot harness expects from an agent."""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

HookCallback = Callable[..., Any]

HOOK_SLOTS: tuple[str, ...] = (
    "on_each_agent_loop_start",
    "on_llm_request",
    "on_llm_response",
    "on_llm_streaming_response",
    "on_agent_loop_end",
)


@runtime_checkable
class EventStream(Protocol):
    def get_events(self) -> list[dict[str, Any]]: ...


@runtime_checkable
class SnapshotAgent(Protocol):
    """An agent exposing settable lifecycle callback slots.

    Each slot holds a callable (or ``None``). Slot results may be plain values
    or awaitables; the agent awaits awaitable results.
    """

    on_each_agent_loop_start: HookCallback | None
    on_llm_request: HookCallback | None
    on_llm_response: HookCallback | None
    on_llm_streaming_response: HookCallback | None
    on_agent_loop_end: HookCallback | None

    def get_current_loop_iteration(self) -> int: ...

    def get_event_stream(self) -> EventStream: ...

    def set_custom_llm_client(self, client: Any) -> None: ...

    async def run(self, options: dict[str, Any]) -> Any: ...


def is_streaming_options(options: Any) -> bool:
    return isinstance(options, dict) and bool(options.get("stream"))
