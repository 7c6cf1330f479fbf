"""Verify-mode hooks: check requests and event logs, serve recorded responses."""

from __future__ import annotations

import copy
from enum import Enum
import logging
from pathlib import Path
from typing import Any

from snappack.config import VerificationOptions
from snappack.core.types import INITIAL_SCOPE, scope_label
from snappack.diff.comparator import SnapshotComparator
from snappack.hooks.agent import SnapshotAgent
from snappack.hooks.bridge import HookBridge, HookHandlers
from snappack.normalize import NormalizerConfig, SnapshotNormalizer
from snappack.plugins.manager import PluginManager
from snappack.replay.client import MockLLMClient
from snappack.replay.exceptions import SnapshotSetupError
from snappack.replay.verify import verify_artifact
from snappack.store.io import SnapshotStore

logger = logging.getLogger(__name__)


class MockerState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    VERIFYING_EVENT_LOG = "verifying_event_log"
    VERIFYING_REQUEST = "verifying_request"
    SERVING = "serving"
    FINALIZING = "finalizing"
    COMPLETED = "completed"


class LLMMocker:
    """Replays a recorded case against a live agent.

    ``setup()`` hooks the agent and builds the mock client. Per loop, the
    event log captured just before the backend call is verified first, then
    the request. The final event log is verified when the agent loop ends.
    """

    def __init__(self, *, plugin_manager: PluginManager | None = None) -> None:
        self.plugin_manager = plugin_manager
        self.state = MockerState.IDLE
        self.agent: SnapshotAgent | None = None
        self.store: SnapshotStore | None = None
        self.case_name = ""
        self.expected_loop_count = 0
        self.update_snapshots = False
        self.verification = VerificationOptions()
        self.comparator = SnapshotComparator()
        self.final_event_stream_state: list[Any] = []
        self._event_stream_states: dict[int, list[Any]] = {}
        self._bridge: HookBridge | None = None
        self._client: MockLLMClient | None = None

    @property
    def verify_llm_requests(self) -> bool:
        return self.verification.verify_llm_requests

    @property
    def verify_event_streams(self) -> bool:
        return self.verification.verify_event_streams

    def setup(
        self,
        agent: SnapshotAgent,
        case_path: str | Path,
        expected_loop_count: int,
        *,
        update_snapshots: bool = False,
        normalizer_config: NormalizerConfig | None = None,
        verification: VerificationOptions | None = None,
    ) -> None:
        case_path = Path(case_path)
        if self._bridge is not None and self._bridge.installed:
            self.restore()

        self.agent = agent
        self.store = SnapshotStore(case_path.parent)
        self.case_name = case_path.name
        self.expected_loop_count = expected_loop_count
        self.update_snapshots = update_snapshots
        self.verification = verification or VerificationOptions()
        self.comparator = SnapshotComparator(SnapshotNormalizer(normalizer_config))
        self.final_event_stream_state = []
        self._event_stream_states = {}

        self._bridge = HookBridge(agent, name=self.case_name)
        self._bridge.install(
            HookHandlers(
                on_llm_request=self._on_llm_request,
                on_llm_response=self._on_llm_response,
                on_llm_streaming_response=self._on_llm_streaming_response,
                on_agent_loop_end=self._on_agent_loop_end,
            )
        )
        self._client = MockLLMClient(agent, self.store, self.case_name)
        self.state = MockerState.ARMED

        logger.info(
            "LLM mocker set up for %s with %d loops", self.case_name, expected_loop_count
        )
        logger.info(
            "Verification settings: LLM requests: %s, Event streams: %s",
            "enabled" if self.verify_llm_requests else "disabled",
            "enabled" if self.verify_event_streams else "disabled",
        )

        if self.verify_event_streams:
            self._verify_initial_event_stream()

    def get_mock_llm_client(self) -> MockLLMClient:
        if self._client is None:
            raise SnapshotSetupError("LLMMocker not properly set up; call setup() first")
        return self._client

    def restore(self) -> None:
        if self._bridge is not None:
            self._bridge.uninstall()
        self._bridge = None
        self._client = None
        if self.state is not MockerState.COMPLETED:
            self.state = MockerState.IDLE
        logger.info("Restored original LLM hooks and client")

    def event_stream_state_after_loop(self, loop: int) -> list[Any]:
        try:
            return self._event_stream_states[loop]
        except KeyError:
            raise KeyError(f"No event stream state found for loop {loop}") from None

    def _require_setup(self) -> tuple[SnapshotAgent, SnapshotStore]:
        if self.agent is None or self.store is None or self.state is MockerState.IDLE:
            raise SnapshotSetupError("LLMMocker not properly set up; call setup() first")
        return self.agent, self.store

    def _verify(self, scope: Any, kind: str, actual: Any) -> None:
        _, store = self._require_setup()
        verify_artifact(
            store,
            self.comparator,
            case_name=self.case_name,
            scope=scope,
            kind=kind,
            actual=actual,
            update_snapshots=self.update_snapshots,
            plugin_manager=self.plugin_manager,
        )

    def _verify_initial_event_stream(self) -> None:
        agent, _ = self._require_setup()
        events = copy.deepcopy(list(agent.get_event_stream().get_events()))
        if not events:
            return
        logger.info("Verifying initial event stream state before first loop")
        self._verify(INITIAL_SCOPE, "event_stream", events)

    def _on_llm_request(self, session_id: str, payload: Any) -> Any:
        agent, _ = self._require_setup()
        loop = agent.get_current_loop_iteration()
        logger.info("Intercepted LLM request for %s", scope_label(loop))

        events = copy.deepcopy(list(agent.get_event_stream().get_events()))
        self._event_stream_states[loop] = events

        self.state = MockerState.VERIFYING_EVENT_LOG
        if self.verify_event_streams:
            self._verify(loop, "event_stream", events)
        else:
            logger.info("Event stream verification skipped for %s", scope_label(loop))

        self.state = MockerState.VERIFYING_REQUEST
        if self.verify_llm_requests:
            self._verify(loop, "request", payload)
        else:
            logger.info("LLM request verification skipped for %s", scope_label(loop))

        self.state = MockerState.SERVING
        return payload

    def _on_llm_response(self, session_id: str, payload: Any) -> Any:
        agent, _ = self._require_setup()
        logger.debug("LLM response hook called for loop %d", agent.get_current_loop_iteration())
        return payload

    def _on_llm_streaming_response(self, session_id: str, payload: Any) -> None:
        agent, _ = self._require_setup()
        logger.debug(
            "LLM streaming response hook called for loop %d", agent.get_current_loop_iteration()
        )

    def _on_agent_loop_end(self, session_id: str) -> None:
        agent, _ = self._require_setup()
        self.state = MockerState.FINALIZING
        events = copy.deepcopy(list(agent.get_event_stream().get_events()))
        self.final_event_stream_state = events

        if self.verify_event_streams:
            logger.info("Verifying final event stream state after agent completion")
            self._verify(None, "final_event_stream", events)
        else:
            logger.info("Final event stream verification skipped")
        self.state = MockerState.COMPLETED
