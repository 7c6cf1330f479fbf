"""Install and remove delegating wrappers on an agent's callback slots."""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import logging
from typing import Any, Awaitable, Callable

from snappack.hooks.agent import HOOK_SLOTS, HookCallback

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HookHandlers:
    """Handlers installed by the bridge; ``None`` slots only delegate."""

    on_each_agent_loop_start: HookCallback | None = None
    on_llm_request: HookCallback | None = None
    on_llm_response: HookCallback | None = None
    on_llm_streaming_response: HookCallback | None = None
    on_agent_loop_end: HookCallback | None = None

    def get(self, slot: str) -> HookCallback | None:
        return getattr(self, slot)


class HookBridge:
    """Intercepts the five lifecycle slots of an agent without owning it.

    Each installed wrapper runs the harness handler first and then the handler
    that occupied the slot at install time, with the same arguments. When a
    previous handler exists its return value is returned; otherwise the
    harness handler's value is. Awaitable results are chained and awaited in
    that same order.
    """

    def __init__(self, agent: Any, *, name: str = "") -> None:
        self.agent = agent
        self.name = name
        self._previous: dict[str, HookCallback | None] = {}
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    def previous(self, slot: str) -> HookCallback | None:
        return self._previous.get(slot)

    def install(self, handlers: HookHandlers) -> bool:
        if self._installed:
            return False

        for slot in HOOK_SLOTS:
            previous = getattr(self.agent, slot, None)
            self._previous[slot] = previous
            setattr(self.agent, slot, _delegating_wrapper(handlers.get(slot), previous))

        self._installed = True
        logger.info("Hooked into agent: %s", self.name or type(self.agent).__name__)
        return True

    def uninstall(self) -> bool:
        if not self._installed:
            return False

        for slot in HOOK_SLOTS:
            setattr(self.agent, slot, self._previous.get(slot))
        self._previous.clear()

        self._installed = False
        logger.info("Unhooked from agent: %s", self.name or type(self.agent).__name__)
        return True


def call_hook(callback: HookCallback | None, *args: Any) -> Any:
    if callback is None:
        return None
    return callback(*args)


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _delegating_wrapper(
    handler: HookCallback | None,
    previous: HookCallback | None,
) -> Callable[..., Any]:
    def wrapper(*args: Any) -> Any:
        result = call_hook(handler, *args)
        if inspect.isawaitable(result):
            return _chain(result, previous, args)

        if previous is None:
            return result
        return previous(*args)

    return wrapper


async def _chain(
    pending: Awaitable[Any],
    previous: HookCallback | None,
    args: tuple[Any, ...],
) -> Any:
    result = await pending
    if previous is None:
        return result
    return await maybe_await(previous(*args))
