"""Incremental reasoning/response splitter for streamed model output."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from .response_parser import FINAL_OUTPUT_TAG, REASONING_TAG_ALIASES, build_block_pattern, strip_markup

__all__ = ["ChunkKind", "ReasoningStreamParser", "StreamChunk"]

# Untagged text mentioning these words is provisionally shown as reasoning.
_THINKING_HINTS: tuple[str, ...] = ("thinking", "reasoning", "consider", "analyze")


class ChunkKind(str, Enum):
    THINKING = "thinking"
    RESPONSE = "response"


@dataclass(slots=True, frozen=True)
class StreamChunk:
    kind: ChunkKind
    content: str
    complete: bool
    timestamp: float = field(default_factory=time.time)


class ReasoningStreamParser:
    """Buffers streamed text and reports tagged blocks as they close.

    Each completed block is reported exactly once. While no tagged block has
    been seen, every ``feed`` also reports the whole buffer as a provisional
    (``complete=False``) chunk so the UI can show progress.
    """

    def __init__(
        self,
        reasoning_aliases: Sequence[str] = REASONING_TAG_ALIASES,
        response_tags: Sequence[str] = ("response", FINAL_OUTPUT_TAG),
    ) -> None:
        self._reasoning = {alias.lower() for alias in reasoning_aliases}
        self._pattern = build_block_pattern(tuple(reasoning_aliases) + tuple(response_tags))
        self._buffer = ""
        self._cursor = 0
        self._saw_block = False

    @property
    def buffer(self) -> str:
        return self._buffer

    def feed(self, chunk: str) -> list[StreamChunk]:
        if chunk:
            self._buffer += chunk
        emitted: list[StreamChunk] = []
        for match in self._pattern.finditer(self._buffer, self._cursor):
            tag = match.group("tag").lower()
            kind = ChunkKind.THINKING if tag in self._reasoning else ChunkKind.RESPONSE
            emitted.append(StreamChunk(kind=kind, content=match.group("body").strip(), complete=True))
            self._cursor = match.end()
            self._saw_block = True

        if not emitted and not self._saw_block and self._buffer.strip():
            lowered = self._buffer.lower()
            kind = ChunkKind.THINKING if any(hint in lowered for hint in _THINKING_HINTS) else ChunkKind.RESPONSE
            emitted.append(StreamChunk(kind=kind, content=self._buffer.strip(), complete=False))
        return emitted

    def finish(self) -> list[StreamChunk]:
        """Flush untagged text left after the last block as a final response chunk."""

        remainder = strip_markup(self._buffer[self._cursor :])
        self._cursor = len(self._buffer)
        if not remainder:
            return []
        return [StreamChunk(kind=ChunkKind.RESPONSE, content=remainder, complete=True)]

    def reset(self) -> None:
        self._buffer = ""
        self._cursor = 0
        self._saw_block = False
