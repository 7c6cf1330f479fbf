"""A plugin that writes every lifecycle event it sees to an NDJSON trace."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from snappack.core.canonical import canonical_json
from snappack.plugins.base import LifecyclePlugin


@dataclass(slots=True)
class LifecycleTracePlugin(LifecyclePlugin):
    output_path: str = "fixtures/.plugins/lifecycle-trace.ndjson"
    name: str = "lifecycle-trace"

    def on_record_start(self, event) -> None:
        self._trace("on_record_start", event)

    def on_record_loop(self, event) -> None:
        self._trace("on_record_loop", event)

    def on_record_end(self, event) -> None:
        self._trace("on_record_end", event)

    def on_replay_start(self, event) -> None:
        self._trace("on_replay_start", event)

    def on_verification(self, event) -> None:
        self._trace("on_verification", event)

    def on_replay_end(self, event) -> None:
        self._trace("on_replay_end", event)

    def _trace(self, hook: str, event) -> None:
        trace = Path(self.output_path)
        trace.parent.mkdir(parents=True, exist_ok=True)
        line = canonical_json({"hook": hook, "plugin": self.name, "event": event.to_dict()})
        with trace.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
