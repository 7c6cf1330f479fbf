"""Lifecycle event dispatch with per-plugin fault isolation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable
import warnings

from snappack.plugins.base import (
    RecordEndEvent,
    RecordLoopEvent,
    RecordStartEvent,
    ReplayEndEvent,
    ReplayStartEvent,
    VerificationEvent,
)


@dataclass(frozen=True, slots=True)
class PluginDiagnostic:
    plugin_name: str
    hook: str
    error_type: str
    message: str
    case_name: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "plugin_name": self.plugin_name,
            "hook": self.hook,
            "error_type": self.error_type,
            "message": self.message,
            "case_name": self.case_name,
        }


@dataclass(frozen=True, slots=True)
class PluginBinding:
    """A plugin plus the snapshot cases it listens to (``None`` means all)."""

    plugin: object
    cases: frozenset[str] | None = None

    def accepts(self, case_name: str | None) -> bool:
        return self.cases is None or case_name in self.cases


class PluginManager:
    """Fans lifecycle events out to plugins.

    Every event carries the case it belongs to; a binding restricted to other
    cases is skipped. A plugin that raises is recorded in ``diagnostics`` and
    reported as a ``RuntimeWarning``; the run itself carries on.
    """

    def __init__(
        self,
        plugins: Iterable[object] = (),
        *,
        bindings: Iterable[PluginBinding] = (),
    ) -> None:
        self.bindings: tuple[PluginBinding, ...] = tuple(
            PluginBinding(plugin) for plugin in plugins
        ) + tuple(bindings)
        self.diagnostics: list[PluginDiagnostic] = []

    @property
    def plugins(self) -> tuple[object, ...]:
        return tuple(binding.plugin for binding in self.bindings)

    def clear_diagnostics(self) -> None:
        self.diagnostics.clear()

    def on_record_start(self, event: RecordStartEvent) -> None:
        self._dispatch("on_record_start", event)

    def on_record_loop(self, event: RecordLoopEvent) -> None:
        self._dispatch("on_record_loop", event)

    def on_record_end(self, event: RecordEndEvent) -> None:
        self._dispatch("on_record_end", event)

    def on_replay_start(self, event: ReplayStartEvent) -> None:
        self._dispatch("on_replay_start", event)

    def on_verification(self, event: VerificationEvent) -> None:
        self._dispatch("on_verification", event)

    def on_replay_end(self, event: ReplayEndEvent) -> None:
        self._dispatch("on_replay_end", event)

    def _dispatch(self, hook: str, event: object) -> None:
        case_name = getattr(event, "case_name", None)
        for binding in self.bindings:
            if not binding.accepts(case_name):
                continue
            callback = getattr(binding.plugin, hook, None)
            if callback is None:
                continue
            try:
                callback(event)
            except Exception as error:
                self._report(binding.plugin, hook, case_name, error)

    def _report(
        self,
        plugin: object,
        hook: str,
        case_name: str | None,
        error: Exception,
    ) -> None:
        diagnostic = PluginDiagnostic(
            plugin_name=str(getattr(plugin, "name", type(plugin).__name__)),
            hook=hook,
            error_type=type(error).__name__,
            message=str(error),
            case_name=case_name,
        )
        self.diagnostics.append(diagnostic)
        warnings.warn(
            f"agentsnap plugin failure: plugin={diagnostic.plugin_name} hook={hook} "
            f"case={case_name} error={diagnostic.error_type}: {diagnostic.message}",
            RuntimeWarning,
            stacklevel=3,
        )
