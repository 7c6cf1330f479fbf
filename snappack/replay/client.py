"""Mock backend client serving recorded responses."""

from __future__ import annotations

import json
import logging
from typing import Any

from snappack.core.types import scope_label
from snappack.hooks.agent import SnapshotAgent
from snappack.replay.stream import StreamingChunkSequence
from snappack.store.exceptions import MissingSnapshotError
from snappack.store.io import SnapshotStore

logger = logging.getLogger(__name__)

_REQUIRED_CHUNK_KEYS = ("id", "object", "choices")


class _Completions:
    def __init__(self, client: "MockLLMClient") -> None:
        self._client = client

    async def create(self, **request: Any) -> Any:
        return self._client.respond(request)


class _Chat:
    def __init__(self, client: "MockLLMClient") -> None:
        self.completions = _Completions(client)


class MockLLMClient:
    """Chat-completions lookalike that answers from the snapshot store.

    The loop to answer for is read from the agent at call time.
    """

    def __init__(self, agent: SnapshotAgent, store: SnapshotStore, case_name: str) -> None:
        self.agent = agent
        self.store = store
        self.case_name = case_name
        self.chat = _Chat(self)

    def respond(self, request: dict[str, Any]) -> Any:
        loop = self.agent.get_current_loop_iteration()
        scope = scope_label(loop)
        logger.info(
            "[Mock LLM Client] Creating chat completion for %s with args: %s",
            scope,
            json.dumps(request, ensure_ascii=False, sort_keys=True, default=str),
        )

        response = self.store.read(self.case_name, loop, "response")
        if response is None:
            raise MissingSnapshotError(
                f"No mock response found for {scope} (case '{self.case_name}')",
                case_name=self.case_name,
                scope=scope,
                artifact="response",
            )

        if not request.get("stream"):
            logger.info("Using mock LLM response from snapshot for %s", scope)
            return response

        chunks = response if isinstance(response, list) else [response]
        for index, chunk in enumerate(chunks):
            if not isinstance(chunk, dict) or any(
                chunk.get(key) in (None, "") for key in _REQUIRED_CHUNK_KEYS
            ):
                logger.warning(
                    "Chunk %d may have invalid structure: %s",
                    index,
                    json.dumps(chunk, ensure_ascii=False, default=str),
                )
        logger.info("Creating streaming response with %d chunks for %s", len(chunks), scope)
        return StreamingChunkSequence(chunks)
