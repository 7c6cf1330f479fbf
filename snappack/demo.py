"""Deterministic in-process agent, used by the CLI demo cases and the tests."""

from __future__ import annotations

import json
import os
import time
import uuid
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Mapping, Sequence

from snappack.hooks.bridge import call_hook, maybe_await
from snappack.runner import AgentSnapshotRunner, CaseConfig, SnapshotCase

FIXTURES_ROOT_ENV_VAR = "AGENTSNAP_FIXTURES_ROOT"
DEFAULT_MODEL = "scripted-model"


def _now_ms() -> int:
    return int(time.time() * 1000)


class EventStream:
    """Append-only event log."""

    def __init__(self) -> None:
        self._events: list[dict[str, Any]] = []

    def send(self, event_type: str, **data: Any) -> dict[str, Any]:
        event = {"id": str(uuid.uuid4()), "type": event_type, "timestamp": _now_ms(), **data}
        self._events.append(event)
        return event

    def get_events(self) -> list[dict[str, Any]]:
        return list(self._events)


class _ScriptedCompletions:
    def __init__(self, client: "ScriptedLLMClient") -> None:
        self._client = client

    async def create(self, **request: Any) -> Any:
        return self._client.complete(request)


class _ScriptedChat:
    def __init__(self, client: "ScriptedLLMClient") -> None:
        self.completions = _ScriptedCompletions(client)


class ScriptedLLMClient:
    """Chat-completions backend that answers from a fixed script.

    A reply is either a string (final answer) or a mapping with ``content``
    and ``tool_calls`` (``[{"name", "arguments"}]``).
    """

    def __init__(self, replies: Sequence[str | Mapping[str, Any]], *, chunk_size: int = 8) -> None:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.replies = list(replies)
        self.chunk_size = chunk_size
        self.calls: list[dict[str, Any]] = []
        self.chat = _ScriptedChat(self)

    def complete(self, request: dict[str, Any]) -> Any:
        index = len(self.calls)
        self.calls.append(request)
        if index >= len(self.replies):
            raise RuntimeError(f"Script exhausted after {len(self.replies)} replies")

        completion = _build_completion(self.replies[index], request, index=index)
        if request.get("stream"):
            return _stream(_split_completion(completion, self.chunk_size))
        return completion


class ScriptedAgent:
    """A loop-based agent that talks to an OpenAI-style chat client.

    Each loop sends the conversation to the client. Tool calls are executed
    against ``tools`` and fed back; a reply without tool calls ends the run.
    """

    def __init__(
        self,
        llm_client: Any = None,
        *,
        model: str = DEFAULT_MODEL,
        provider: str = "scripted",
        instructions: str = "You are a helpful assistant.",
        tools: Mapping[str, Callable[..., Any]] | None = None,
        max_iterations: int = 10,
    ) -> None:
        self.llm_client = llm_client
        self.model = model
        self.provider = provider
        self.instructions = instructions
        self.tools = dict(tools or {})
        self.max_iterations = max_iterations

        self.on_each_agent_loop_start: Callable[..., Any] | None = None
        self.on_llm_request: Callable[..., Any] | None = None
        self.on_llm_response: Callable[..., Any] | None = None
        self.on_llm_streaming_response: Callable[..., Any] | None = None
        self.on_agent_loop_end: Callable[..., Any] | None = None

        self._event_stream = EventStream()
        self._messages: list[dict[str, Any]] = []
        self._loop = 0

    def get_current_loop_iteration(self) -> int:
        return self._loop

    def get_event_stream(self) -> EventStream:
        return self._event_stream

    def set_custom_llm_client(self, client: Any) -> None:
        self.llm_client = client

    async def run(self, options: dict[str, Any]) -> Any:
        if self.llm_client is None:
            raise RuntimeError("ScriptedAgent has no LLM client")
        stream = bool(options.get("stream"))
        events = self._iterate(options.get("input", ""), stream=stream)
        if stream:
            return events

        final: dict[str, Any] | None = None
        async for event in events:
            if event["type"] == "assistant_message":
                final = event
        return final

    async def _iterate(self, user_input: Any, *, stream: bool) -> AsyncIterator[dict[str, Any]]:
        session_id = str(uuid.uuid4())
        self._loop = 0
        self._messages = [
            {"role": "system", "content": self.instructions},
            {"role": "user", "content": user_input},
        ]
        yield self._event_stream.send("user_message", content=user_input)

        while self._loop < self.max_iterations:
            self._loop += 1
            await self._call_hook("on_each_agent_loop_start", session_id)
            produced, done = await self._step(session_id, stream=stream)
            for event in produced:
                yield event
            if done:
                break

        await self._call_hook("on_agent_loop_end", session_id)

    async def _call_hook(self, slot: str, session_id: str, **payload: Any) -> Any:
        args: tuple[Any, ...] = (session_id,)
        if payload:
            args += ({"provider": self.provider, **payload},)
        return await maybe_await(call_hook(getattr(self, slot), *args))

    async def _step(self, session_id: str, *, stream: bool) -> tuple[list[dict[str, Any]], bool]:
        """Run one loop iteration; return the new events and whether to stop."""
        request: dict[str, Any] = {"model": self.model, "messages": list(self._messages)}
        if self.tools:
            request["tools"] = [
                {"type": "function", "function": {"name": name}} for name in sorted(self.tools)
            ]
        if stream:
            request["stream"] = True

        await self._call_hook("on_llm_request", session_id, request=request)
        started = time.monotonic()
        result = await self.llm_client.chat.completions.create(**request)

        if stream:
            chunks = [chunk async for chunk in result]
            completion = _merge_chunks(chunks)
            await self._call_hook("on_llm_response", session_id, response=completion)
            await self._call_hook("on_llm_streaming_response", session_id, chunks=chunks)
        else:
            completion = result
            await self._call_hook("on_llm_response", session_id, response=completion)

        message = completion["choices"][0]["message"]
        tool_calls = message.get("tool_calls") or []
        self._messages.append(dict(message))
        produced = [
            self._event_stream.send(
                "assistant_message",
                content=message.get("content") or "",
                toolCalls=tool_calls,
                elapsedMs=int((time.monotonic() - started) * 1000),
            )
        ]

        for call in tool_calls:
            produced.extend(self._run_tool(call))
        return produced, not tool_calls

    def _run_tool(self, call: Mapping[str, Any]) -> list[dict[str, Any]]:
        name = call["function"]["name"]
        arguments = json.loads(call["function"].get("arguments") or "{}")
        started = time.monotonic()
        events = [
            self._event_stream.send(
                "tool_call",
                toolCallId=call["id"],
                name=name,
                arguments=arguments,
                startTime=_now_ms(),
            )
        ]
        tool = self.tools.get(name)
        if tool is None:
            content: Any = {"error": f"Unknown tool: {name}"}
        else:
            content = tool(**arguments)
        self._messages.append(
            {
                "role": "tool",
                "tool_call_id": call["id"],
                "content": json.dumps(content, sort_keys=True),
            }
        )
        events.append(
            self._event_stream.send(
                "tool_result",
                toolCallId=call["id"],
                name=name,
                content=content,
                elapsedMs=int((time.monotonic() - started) * 1000),
            )
        )
        return events


def _build_completion(
    reply: str | Mapping[str, Any],
    request: Mapping[str, Any],
    *,
    index: int,
) -> dict[str, Any]:
    if isinstance(reply, str):
        content, raw_calls = reply, []
    else:
        content, raw_calls = reply.get("content", ""), list(reply.get("tool_calls") or [])

    message: dict[str, Any] = {"role": "assistant", "content": content}
    if raw_calls:
        message["tool_calls"] = [
            {
                "id": f"call_{uuid.uuid4().hex[:12]}",
                "type": "function",
                "function": {
                    "name": call["name"],
                    "arguments": json.dumps(call.get("arguments", {}), sort_keys=True),
                },
            }
            for call in raw_calls
        ]
    return {
        "id": f"chatcmpl-{uuid.uuid4().hex[:12]}",
        "object": "chat.completion",
        "created": int(time.time()),
        "model": request.get("model", DEFAULT_MODEL),
        "choices": [
            {
                "index": 0,
                "message": message,
                "finish_reason": "tool_calls" if raw_calls else "stop",
            }
        ],
    }


def _split_completion(completion: Mapping[str, Any], chunk_size: int) -> list[dict[str, Any]]:
    choice = completion["choices"][0]
    message = choice["message"]
    content = message.get("content") or ""
    pieces = [content[i : i + chunk_size] for i in range(0, len(content), chunk_size)] or [""]

    chunks = []
    for position, piece in enumerate(pieces):
        delta: dict[str, Any] = {"content": piece}
        if position == 0:
            delta["role"] = "assistant"
        chunks.append(_chunk(completion, delta, None))
    if message.get("tool_calls"):
        chunks.append(_chunk(completion, {"tool_calls": message["tool_calls"]}, None))
    chunks.append(_chunk(completion, {}, choice["finish_reason"]))
    return chunks


def _chunk(
    completion: Mapping[str, Any],
    delta: dict[str, Any],
    finish_reason: str | None,
) -> dict[str, Any]:
    return {
        "id": completion["id"],
        "object": "chat.completion.chunk",
        "created": completion["created"],
        "model": completion["model"],
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def _merge_chunks(chunks: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
    content: list[str] = []
    tool_calls: list[Any] = []
    finish_reason = None
    for chunk in chunks:
        for choice in chunk.get("choices") or []:
            delta = choice.get("delta") or {}
            content.append(delta.get("content") or "")
            tool_calls.extend(delta.get("tool_calls") or [])
            finish_reason = choice.get("finish_reason") or finish_reason

    message: dict[str, Any] = {"role": "assistant", "content": "".join(content)}
    if tool_calls:
        message["tool_calls"] = tool_calls
    first = chunks[0] if chunks else {}
    return {
        "id": first.get("id"),
        "object": "chat.completion",
        "created": first.get("created"),
        "model": first.get("model"),
        "choices": [{"index": 0, "message": message, "finish_reason": finish_reason}],
    }


async def _stream(chunks: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    for chunk in chunks:
        yield chunk


def get_weather(city: str = "Berlin") -> dict[str, Any]:
    return {"city": city, "forecast": "sunny", "temperature_c": 21}


_DEMO_CASES: dict[str, Callable[[], SnapshotCase]] = {
    "greeting": lambda: SnapshotCase(
        agent=ScriptedAgent(ScriptedLLMClient(["Hello! How can I help you today?"])),
        run_options={"input": "hi"},
    ),
    "tool-use": lambda: SnapshotCase(
        agent=ScriptedAgent(
            ScriptedLLMClient(
                [
                    {
                        "content": "Let me check the weather.",
                        "tool_calls": [{"name": "get_weather", "arguments": {"city": "Berlin"}}],
                    },
                    "It is sunny in Berlin, 21 degrees.",
                ]
            ),
            tools={"get_weather": get_weather},
        ),
        run_options={"input": "What's the weather in Berlin?"},
    ),
    "streaming": lambda: SnapshotCase(
        agent=ScriptedAgent(ScriptedLLMClient(["Streaming replies arrive in small pieces."])),
        run_options={"input": "stream something", "stream": True},
    ),
}


def demo_case_loader(case: CaseConfig) -> SnapshotCase:
    return _DEMO_CASES[case.name]()


def build_demo_runner(fixtures_root: str | Path | None = None) -> AgentSnapshotRunner:
    """Runner over the built-in demo cases, rooted at ``fixtures_root``."""
    root = Path(fixtures_root or os.getenv(FIXTURES_ROOT_ENV_VAR) or "fixtures")
    cases = [CaseConfig(name=name, snapshot_path=root / name) for name in _DEMO_CASES]
    return AgentSnapshotRunner(cases, case_loader=demo_case_loader)
