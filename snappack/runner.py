"""Named snapshot cases and a runner that generates or replays them."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Callable, Iterable

from snappack.config import AgentSnapshotOptions, ReplayRunConfig
from snappack.core.entrypoints import EntrypointError, import_entrypoint
from snappack.core.models import SnapshotGenerationResult, SnapshotRunResult
from snappack.hooks.agent import SnapshotAgent, is_streaming_options
from snappack.snapshot import AgentSnapshot
from snappack.store.exceptions import SnapshotError

logger = logging.getLogger(__name__)


class UnknownCaseError(SnapshotError, LookupError):
    """Raised when a case name is not registered with the runner."""


class CaseLoadError(SnapshotError):
    """Raised when a case loader cannot produce a usable case."""


@dataclass(frozen=True, slots=True)
class CaseConfig:
    """A named case: where its snapshot lives and how to load its agent."""

    name: str
    snapshot_path: str | Path
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "snapshot_path": str(self.snapshot_path),
            "source": self.source,
        }


@dataclass(slots=True)
class SnapshotCase:
    agent: SnapshotAgent
    run_options: dict[str, Any] = field(default_factory=dict)


CaseLoader = Callable[[CaseConfig], SnapshotCase]


def entrypoint_case_loader(case: CaseConfig) -> SnapshotCase:
    """Resolve ``case.source`` (``module:attribute``) to a ``SnapshotCase``.

    The attribute may be a case or a zero-argument factory returning one.
    """
    if not case.source:
        raise CaseLoadError(f"Case '{case.name}' has no source entrypoint.")
    try:
        target = import_entrypoint(case.source)
    except EntrypointError as error:
        raise CaseLoadError(f"Case '{case.name}': {error}") from error

    if not isinstance(target, SnapshotCase) and callable(target):
        target = target()
    if not isinstance(target, SnapshotCase):
        raise CaseLoadError(
            f"Invalid case source '{case.source}': expected a SnapshotCase with "
            "an agent and run options."
        )
    return target


class AgentSnapshotRunner:
    """Runs generate/replay over a registry of named cases."""

    def __init__(
        self,
        cases: Iterable[CaseConfig],
        case_loader: CaseLoader = entrypoint_case_loader,
    ) -> None:
        self.cases: tuple[CaseConfig, ...] = tuple(cases)
        self.case_loader = case_loader
        names = [case.name for case in self.cases]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Duplicate case names: {', '.join(duplicates)}")

    @property
    def case_names(self) -> list[str]:
        return [case.name for case in self.cases]

    def get_case(self, name: str) -> CaseConfig | None:
        for case in self.cases:
            if case.name == name:
                return case
        return None

    def require_case(self, name: str) -> CaseConfig:
        case = self.get_case(name)
        if case is None:
            raise UnknownCaseError(f'Case "{name}" not found.')
        return case

    async def generate_case(self, case: CaseConfig | str) -> SnapshotGenerationResult:
        config = self.require_case(case) if isinstance(case, str) else case
        logger.info("Generating snapshot for %s", config.name)
        loaded = self._load(config)
        snapshot = AgentSnapshot(
            loaded.agent,
            AgentSnapshotOptions(snapshot_path=config.snapshot_path, update_snapshots=True),
        )
        result = await snapshot.generate(loaded.run_options)

        if is_streaming_options(loaded.run_options):
            try:
                result.response = [event async for event in result.response]
            finally:
                snapshot.restore()
            result.loop_count = snapshot.count_loops()
            if result.meta is not None:
                result.meta.loop_count = result.loop_count
            result.events = list(loaded.agent.get_event_stream().get_events())

        logger.info("Snapshot generated at %s", config.snapshot_path)
        return result

    async def replay_case(
        self,
        case: CaseConfig | str,
        config: ReplayRunConfig | None = None,
    ) -> SnapshotRunResult:
        case_config = self.require_case(case) if isinstance(case, str) else case
        logger.info("Testing snapshot for %s", case_config.name)
        loaded = self._load(case_config)
        snapshot = AgentSnapshot(
            loaded.agent,
            AgentSnapshotOptions(snapshot_path=case_config.snapshot_path),
        )
        return await snapshot.replay(loaded.run_options, config)

    async def generate_all(self) -> dict[str, SnapshotGenerationResult]:
        results: dict[str, SnapshotGenerationResult] = {}
        for case in self.cases:
            results[case.name] = await self.generate_case(case)
        return results

    async def replay_all(
        self,
        config: ReplayRunConfig | None = None,
    ) -> dict[str, SnapshotRunResult]:
        results: dict[str, SnapshotRunResult] = {}
        for case in self.cases:
            results[case.name] = await self.replay_case(case, config)
        return results

    def _load(self, case: CaseConfig) -> SnapshotCase:
        loaded = self.case_loader(case)
        if loaded is None or loaded.agent is None:
            raise CaseLoadError(f"Case '{case.name}' did not provide an agent.")
        return loaded
