"""Single-pass chunk sequence rebuilt from a recorded streaming response."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from snappack.core.models import StreamPull

logger = logging.getLogger(__name__)


class StreamingChunkSequence:
    """Yields recorded chunks in order, then reports ``done`` forever.

    ``close()`` abandons the sequence mid-stream and ``fail()`` injects an
    error into it; both leave it permanently exhausted. The sequence can be
    consumed with ``pull()``, ``for`` or ``async for``, but only once.
    """

    def __init__(self, chunks: Iterable[Any]) -> None:
        self._chunks = list(chunks)
        self._index = 0
        self._closed = False
        self.error: BaseException | None = None
        logger.debug("Created streaming sequence with %d chunks", len(self._chunks))

    def __len__(self) -> int:
        return len(self._chunks)

    @property
    def exhausted(self) -> bool:
        return self._closed

    @property
    def consumed(self) -> int:
        return self._index

    def pull(self) -> StreamPull:
        if self._closed:
            return StreamPull(done=True)

        if self._index < len(self._chunks):
            chunk = self._chunks[self._index]
            self._index += 1
            logger.debug("Yielding chunk %d/%d", self._index, len(self._chunks))
            return StreamPull(done=False, value=chunk)

        logger.debug("Sequence completed after %d chunks", self._index)
        self._closed = True
        return StreamPull(done=True)

    def close(self) -> StreamPull:
        if not self._closed:
            logger.debug("Sequence closed early at %d/%d", self._index, len(self._chunks))
        self._closed = True
        return StreamPull(done=True)

    def fail(self, error: BaseException) -> StreamPull:
        logger.error("Error in streaming response sequence: %s", error)
        self.error = error
        self._closed = True
        return StreamPull(done=True)

    def __iter__(self) -> "StreamingChunkSequence":
        return self

    def __next__(self) -> Any:
        step = self.pull()
        if step.done:
            raise StopIteration
        return step.value

    def __aiter__(self) -> "StreamingChunkSequence":
        return self

    async def __anext__(self) -> Any:
        step = self.pull()
        if step.done:
            raise StopAsyncIteration
        return step.value

    async def aclose(self) -> None:
        self.close()

    async def athrow(self, error: BaseException) -> None:
        self.fail(error)
