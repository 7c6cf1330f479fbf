"""Shared type aliases and on-disk naming for snapshot artifacts."""

from typing import Literal, Union

ArtifactKind = Literal["request", "response", "event_stream", "final_event_stream"]

ARTIFACT_KINDS: tuple[str, ...] = (
    "request",
    "response",
    "event_stream",
    "final_event_stream",
)

ARTIFACT_FILENAMES: dict[str, str] = {
    "request": "llm-request.jsonl",
    "response": "llm-response.jsonl",
    "event_stream": "event-stream.jsonl",
    "final_event_stream": "event-stream.jsonl",
}

LOOP_DIR_PREFIX = "loop-"
INITIAL_SCOPE = "initial"
ROOT_SCOPE_LABEL = "<root>"
DIAGNOSTIC_MARKER = ".actual"

# A loop number, the "initial" pre-loop scope, or None for the case root.
LoopScope = Union[int, str, None]


def scope_label(scope: LoopScope) -> str:
    if scope is None:
        return ROOT_SCOPE_LABEL
    if isinstance(scope, int):
        return f"{LOOP_DIR_PREFIX}{scope}"
    return str(scope)
