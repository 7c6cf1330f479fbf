"""File-tree snapshot store: one directory per case, one per loop."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
import re
import tempfile
from typing import Any

from snappack.core.types import (
    ARTIFACT_FILENAMES,
    ARTIFACT_KINDS,
    DIAGNOSTIC_MARKER,
    INITIAL_SCOPE,
    LOOP_DIR_PREFIX,
    ArtifactKind,
    LoopScope,
    scope_label,
)
from snappack.store.exceptions import SnapshotReadError, SnapshotStoreError

logger = logging.getLogger(__name__)

_LOOP_DIR_RE = re.compile(rf"^{re.escape(LOOP_DIR_PREFIX)}(?P<index>\d+)$")


class SnapshotStore:
    """Maps ``(case, loop, artifact kind)`` to files under a fixtures root.

    The store exclusively owns its root for the duration of a run. Concurrent
    runs against the same case are unsupported.
    """

    def __init__(self, fixtures_root: str | Path) -> None:
        self.fixtures_root = Path(fixtures_root)

    def case_path(self, case_name: str) -> Path:
        _validate_case_name(case_name)
        return self.fixtures_root / case_name

    def scope_path(self, case_name: str, scope: LoopScope) -> Path:
        case_dir = self.case_path(case_name)
        if scope is None:
            return case_dir
        if isinstance(scope, bool):
            raise SnapshotStoreError(f"Invalid loop scope: {scope!r}")
        if isinstance(scope, int):
            if scope < 1:
                raise SnapshotStoreError(f"Loop numbers are 1-based, got {scope}")
            return case_dir / f"{LOOP_DIR_PREFIX}{scope}"
        if scope == INITIAL_SCOPE:
            return case_dir / INITIAL_SCOPE
        raise SnapshotStoreError(f"Invalid loop scope: {scope!r}")

    def artifact_path(self, case_name: str, scope: LoopScope, kind: ArtifactKind) -> Path:
        filename = _artifact_filename(kind)
        if kind == "final_event_stream":
            return self.case_path(case_name) / filename
        return self.scope_path(case_name, scope) / filename

    def diagnostic_path(self, case_name: str, scope: LoopScope, kind: ArtifactKind) -> Path:
        target = self.artifact_path(case_name, scope, kind)
        return target.with_name(f"{target.stem}{DIAGNOSTIC_MARKER}{target.suffix}")

    def ensure_loop_dir(self, case_name: str, loop: int) -> Path:
        loop_dir = self.scope_path(case_name, loop)
        loop_dir.mkdir(parents=True, exist_ok=True)
        return loop_dir

    def create_case_structure(self, case_name: str, loop_count: int) -> Path:
        """Create the case directory with ``initial/`` and ``loop-1..n``."""
        case_dir = self.case_path(case_name)
        case_dir.mkdir(parents=True, exist_ok=True)
        for loop in range(1, loop_count + 1):
            self.ensure_loop_dir(case_name, loop)
        (case_dir / INITIAL_SCOPE).mkdir(parents=True, exist_ok=True)
        return case_dir

    def read(self, case_name: str, scope: LoopScope, kind: ArtifactKind) -> Any | None:
        """Read an artifact, or ``None`` when it does not exist.

        Response artifacts fall back to line-delimited chunks when the file is
        not a single JSON document. A stream of exactly one chunk is stored as
        one line, so it reads back as that chunk rather than a one-item list;
        use ``read_chunks`` when a chunk list is needed.
        """
        path = self.artifact_path(case_name, scope, kind)
        if not path.is_file():
            return None

        content = _read_text(path)
        try:
            return json.loads(content)
        except json.JSONDecodeError as error:
            if kind != "response":
                raise SnapshotReadError(
                    f"Snapshot artifact is not valid JSON: {path} ({error})"
                ) from error
            return _parse_json_lines(content, path=path, fallback_error=error)

    def read_chunks(self, case_name: str, loop: LoopScope) -> list[Any] | None:
        """Read the response artifact of a loop as a chunk list."""
        response = self.read(case_name, loop, "response")
        if response is None:
            return None
        if isinstance(response, list):
            return response
        return [response]

    def write(self, case_name: str, scope: LoopScope, kind: ArtifactKind, value: Any) -> Path:
        path = self.artifact_path(case_name, scope, kind)
        _atomic_write_text(path, _render_document(value))
        logger.info("Snapshot written to %s", path)
        return path

    def write_chunks(self, case_name: str, loop: int, chunks: list[Any]) -> Path | None:
        """Write streamed chunks, one JSON document per line, in arrival order."""
        if not chunks:
            logger.debug(
                "No chunks to write for %s/%s", case_name, scope_label(loop)
            )
            return None
        path = self.artifact_path(case_name, loop, "response")
        _atomic_write_text(path, "\n".join(_render_line(chunk) for chunk in chunks))
        logger.info("Stream chunks written to %s (%d chunks)", path, len(chunks))
        return path

    def write_diagnostic(
        self,
        case_name: str,
        scope: LoopScope,
        kind: ArtifactKind,
        value: Any,
    ) -> Path:
        """Write the actual value next to its expected artifact for inspection."""
        path = self.diagnostic_path(case_name, scope, kind)
        _atomic_write_text(path, _render_document(value))
        logger.info("Actual data written to %s", path)
        return path

    def count_loops(self, case_name: str) -> int:
        """Count dense ``loop-<n>`` directories, ordered numerically from 1."""
        case_dir = self.case_path(case_name)
        if not case_dir.is_dir():
            return 0

        indices = sorted(
            int(match.group("index"))
            for entry in case_dir.iterdir()
            if entry.is_dir() and (match := _LOOP_DIR_RE.match(entry.name))
        )

        count = 0
        for index in indices:
            if index == count + 1:
                count = index
            elif index > count + 1:
                break
        return count


def _artifact_filename(kind: str) -> str:
    if kind not in ARTIFACT_KINDS:
        raise SnapshotStoreError(
            f"Unsupported artifact kind {kind!r}; expected one of {', '.join(ARTIFACT_KINDS)}."
        )
    return ARTIFACT_FILENAMES[kind]


def _validate_case_name(case_name: str) -> None:
    if not case_name or not case_name.strip():
        raise SnapshotStoreError("case_name must be non-empty")
    if "/" in case_name or "\\" in case_name or case_name in {".", ".."}:
        raise SnapshotStoreError("case_name must not include path separators")


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as error:
        raise SnapshotReadError(f"Snapshot artifact is not valid UTF-8 text: {path}") from error


def _parse_json_lines(
    content: str,
    *,
    path: Path,
    fallback_error: json.JSONDecodeError,
) -> list[Any]:
    lines = [line for line in content.splitlines() if line.strip()]
    if not lines:
        raise SnapshotReadError(
            f"Snapshot artifact is empty or not valid JSON: {path} ({fallback_error})"
        ) from fallback_error

    chunks: list[Any] = []
    for number, line in enumerate(lines, start=1):
        try:
            chunks.append(json.loads(line))
        except json.JSONDecodeError as error:
            raise SnapshotReadError(
                f"Snapshot artifact line {number} is not valid JSON: {path} ({error})"
            ) from error
    return chunks


def _render_document(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2) + "\n"


def _render_line(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
