"""Orchestrates recording and replaying one agent against one snapshot case."""

from __future__ import annotations

import logging
import time
from typing import Any

from snappack.capture.recorder import SnapshotRecorder
from snappack.config import (
    AgentSnapshotOptions,
    ReplayRunConfig,
    resolve_replay_settings,
)
from snappack.core.models import RunMeta, SnapshotGenerationResult, SnapshotRunResult
from snappack.hooks.agent import SnapshotAgent, is_streaming_options
from snappack.normalize import NormalizerConfig
from snappack.plugins.base import (
    RecordEndEvent,
    RecordStartEvent,
    ReplayEndEvent,
    ReplayStartEvent,
)
from snappack.plugins.manager import PluginManager
from snappack.plugins.activation import resolve_plugin_manager
from snappack.replay.exceptions import LoopCountMismatchError, SnapshotSetupError
from snappack.replay.mocker import LLMMocker
from snappack.store.io import SnapshotStore

logger = logging.getLogger(__name__)


class AgentSnapshot:
    """Records an agent run into a case, or replays the agent against it."""

    def __init__(
        self,
        agent: SnapshotAgent,
        options: AgentSnapshotOptions,
        *,
        plugin_manager: PluginManager | None = None,
    ) -> None:
        self.agent = agent
        self.options = options
        self.plugin_manager = plugin_manager
        self.store = SnapshotStore(options.fixtures_root)
        self.case_name = options.case_name
        self.snapshot_name = options.snapshot_name or options.case_name
        self.snapshot_path = self.store.case_path(self.case_name)
        self._normalizer_config = options.normalizer_config
        self._recorder: SnapshotRecorder | None = None
        self._mocker: LLMMocker | None = None

    @property
    def mocker(self) -> LLMMocker | None:
        return self._mocker

    def get_agent(self) -> SnapshotAgent:
        return self.agent

    def get_current_loop(self) -> int:
        return self.agent.get_current_loop_iteration()

    def update_normalizer_config(self, config: NormalizerConfig | None) -> None:
        self._normalizer_config = config
        if self._mocker is not None:
            self._mocker.comparator.normalizer.update_config(config)

    def count_loops(self) -> int:
        return self.store.count_loops(self.case_name)

    async def generate(self, run_options: dict[str, Any]) -> SnapshotGenerationResult:
        """Run the agent against its real backend and record every loop.

        When the agent returns a stream, the hooks stay installed so loops
        driven by the consumer are still recorded; call ``restore()`` once the
        stream is drained.
        """
        manager = self._plugins()
        self.restore()
        self.snapshot_path.mkdir(parents=True, exist_ok=True)
        manager.on_record_start(
            RecordStartEvent(case_name=self.case_name, snapshot_path=str(self.snapshot_path))
        )

        recorder = SnapshotRecorder(
            self.agent,
            self.store,
            self.case_name,
            plugin_manager=manager,
        )
        self._recorder = recorder
        recorder.start()
        logger.info("Starting snapshot generation for '%s'", self.snapshot_name)
        started = time.monotonic()

        try:
            response = await self.agent.run(run_options)
        except Exception as error:
            recorder.stop()
            manager.on_record_end(
                RecordEndEvent(
                    case_name=self.case_name,
                    status="error",
                    error_type=error.__class__.__name__,
                    error_message=str(error),
                )
            )
            raise

        if not is_streaming_options(run_options):
            recorder.stop()

        events = list(self.agent.get_event_stream().get_events())
        loop_count = self.count_loops()
        elapsed_ms = int((time.monotonic() - started) * 1000)
        manager.on_record_end(
            RecordEndEvent(case_name=self.case_name, status="ok", loop_count=loop_count)
        )
        logger.info("Generated snapshot '%s' with %d loops", self.snapshot_name, loop_count)

        return SnapshotGenerationResult(
            snapshot_path=str(self.snapshot_path),
            loop_count=loop_count,
            response=response,
            events=events,
            meta=RunMeta(
                case_name=self.snapshot_name,
                execution_time_ms=elapsed_ms,
                loop_count=loop_count,
            ),
        )

    async def replay(
        self,
        run_options: dict[str, Any],
        config: ReplayRunConfig | None = None,
    ) -> SnapshotRunResult:
        """Replay the agent against the recorded case and verify it.

        A streaming run is drained before the loop count is checked, and the
        collected events become the result's ``response``.
        """
        manager = self._plugins()
        settings = resolve_replay_settings(self.options, config)
        normalizer_config = self._normalizer_config
        if config is not None and config.normalizer_config is not None:
            normalizer_config = config.normalizer_config

        if not self.snapshot_path.is_dir():
            raise SnapshotSetupError(
                f"Snapshot directory not found: {self.snapshot_path}. "
                "Generate snapshots first using generate()"
            )

        self.restore()
        expected = self.count_loops()
        logger.info(
            "Running test against snapshot '%s'%s; found %d loops",
            self.snapshot_name,
            " (update mode)" if settings.update_snapshots else "",
            expected,
        )
        manager.on_replay_start(
            ReplayStartEvent(
                case_name=self.case_name,
                snapshot_path=str(self.snapshot_path),
                expected_loop_count=expected,
                update_snapshots=settings.update_snapshots,
            )
        )

        started = time.monotonic()
        mocker = LLMMocker(plugin_manager=manager)
        self._mocker = mocker
        executed: int | None = None
        try:
            mocker.setup(
                self.agent,
                self.snapshot_path,
                expected,
                update_snapshots=settings.update_snapshots,
                normalizer_config=normalizer_config,
                verification=settings.verification,
            )
            self.agent.set_custom_llm_client(mocker.get_mock_llm_client())

            if is_streaming_options(run_options):
                stream = await self.agent.run(run_options)
                response = [event async for event in stream]
                logger.info("Streaming execution completed with %d events", len(response))
            else:
                response = await self.agent.run(run_options)

            events = list(self.agent.get_event_stream().get_events())
            executed = self.agent.get_current_loop_iteration()
            logger.info("Executed %d agent loops out of %d expected loops", executed, expected)
            if executed != expected:
                raise LoopCountMismatchError(
                    case_name=self.case_name,
                    expected=expected,
                    executed=executed,
                )
        except Exception as error:
            manager.on_replay_end(
                ReplayEndEvent(
                    case_name=self.case_name,
                    status="error",
                    expected_loop_count=expected,
                    executed_loop_count=executed,
                    error_type=error.__class__.__name__,
                    error_message=str(error),
                )
            )
            raise
        finally:
            mocker.restore()

        manager.on_replay_end(
            ReplayEndEvent(
                case_name=self.case_name,
                status="ok",
                expected_loop_count=expected,
                executed_loop_count=executed,
            )
        )
        return SnapshotRunResult(
            response=response,
            events=events,
            meta=RunMeta(
                case_name=self.snapshot_name,
                execution_time_ms=int((time.monotonic() - started) * 1000),
                loop_count=executed,
            ),
        )

    def restore(self) -> None:
        """Detach any recorder or mocker still hooked into the agent."""
        if self._recorder is not None:
            self._recorder.stop()
            self._recorder = None
        if self._mocker is not None:
            self._mocker.restore()

    def _plugins(self) -> PluginManager:
        return resolve_plugin_manager(self.plugin_manager)
