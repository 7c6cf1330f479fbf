"""Capture-mode hooks: persist requests, responses and event logs per loop."""

from __future__ import annotations

import logging
from typing import Any

from snappack.hooks.agent import SnapshotAgent
from snappack.hooks.bridge import HookBridge, HookHandlers
from snappack.plugins.base import RecordLoopEvent
from snappack.plugins.manager import PluginManager
from snappack.plugins.activation import resolve_plugin_manager
from snappack.store.io import SnapshotStore

logger = logging.getLogger(__name__)


class SnapshotRecorder:
    """Records one agent run into a snapshot case.

    For every loop the request and the event log as it stands just before the
    backend call are written to ``loop-<n>/``. The response follows once the
    backend answers: streamed chunks one per line, or a single document. The
    final event log lands at the case root when the agent loop ends.
    """

    def __init__(
        self,
        agent: SnapshotAgent,
        store: SnapshotStore,
        case_name: str,
        *,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.agent = agent
        self.store = store
        self.case_name = case_name
        self.plugin_manager = plugin_manager
        self.llm_requests: dict[int, Any] = {}
        self.llm_responses: dict[int, Any] = {}
        self._streamed_loops: set[int] = set()
        self._bridge = HookBridge(agent, name=case_name)

    @property
    def hooked(self) -> bool:
        return self._bridge.installed

    def start(self) -> bool:
        return self._bridge.install(
            HookHandlers(
                on_each_agent_loop_start=self._on_loop_start,
                on_llm_request=self._on_llm_request,
                on_llm_response=self._on_llm_response,
                on_llm_streaming_response=self._on_llm_streaming_response,
                on_agent_loop_end=self._on_agent_loop_end,
            )
        )

    def stop(self) -> bool:
        return self._bridge.uninstall()

    def _on_loop_start(self, session_id: str) -> None:
        logger.info("Starting agent loop %d", self.agent.get_current_loop_iteration())

    def _on_llm_request(self, session_id: str, payload: Any) -> Any:
        loop = self.agent.get_current_loop_iteration()
        self.llm_requests[loop] = payload

        self.store.ensure_loop_dir(self.case_name, loop)
        request_path = self.store.write(self.case_name, loop, "request", payload)
        self._emit_loop(loop, "request", request_path)

        events = list(self.agent.get_event_stream().get_events())
        events_path = self.store.write(self.case_name, loop, "event_stream", events)
        self._emit_loop(loop, "event_stream", events_path)
        logger.info("Captured request and event stream for loop-%d", loop)
        return payload

    def _on_llm_response(self, session_id: str, payload: Any) -> Any:
        loop = self.agent.get_current_loop_iteration()
        self.llm_responses[loop] = payload
        if loop in self._streamed_loops:
            return payload

        response = payload.get("response") if isinstance(payload, dict) else payload
        if response is not None:
            path = self.store.write(self.case_name, loop, "response", response)
            self._emit_loop(loop, "response", path)
        return payload

    def _on_llm_streaming_response(self, session_id: str, payload: Any) -> None:
        loop = self.agent.get_current_loop_iteration()
        chunks = payload.get("chunks") if isinstance(payload, dict) else payload
        path = self.store.write_chunks(self.case_name, loop, list(chunks or []))
        if path is None:
            return
        self._streamed_loops.add(loop)
        self._emit_loop(loop, "response", path)

    def _on_agent_loop_end(self, session_id: str) -> None:
        events = list(self.agent.get_event_stream().get_events())
        self.store.write(self.case_name, None, "final_event_stream", events)
        logger.info("Captured final event stream for %s (%d events)", self.case_name, len(events))

    def _emit_loop(self, loop: int, artifact: str, path: Any) -> None:
        manager = resolve_plugin_manager(self.plugin_manager)
        manager.on_record_loop(
            RecordLoopEvent(
                case_name=self.case_name,
                loop=loop,
                artifact=artifact,
                path=str(path),
            )
        )
