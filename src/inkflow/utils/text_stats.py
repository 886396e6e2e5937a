"""Lightweight text statistics used in mutation summaries and telemetry."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

__all__ = [
    "DocumentStats",
    "count_words",
    "document_stats",
    "paragraphs",
    "reading_time_minutes",
    "snippet",
]

WORDS_PER_MINUTE = 225
_WHITESPACE_RE = re.compile(r"\s+")
_PARAGRAPH_BREAK_RE = re.compile(r"\n\s*\n")


@dataclass(slots=True, frozen=True)
class DocumentStats:
    """Word, paragraph and reading-time figures for a block of text."""

    words: int
    paragraphs: int
    reading_time_minutes: int

    def as_status_text(self) -> str:
        return f"{self.words:,} words · {self.paragraphs} paragraphs · {self.reading_time_minutes} min read"


def count_words(text: str) -> int:
    return len([part for part in _WHITESPACE_RE.split(text or "") if part])


def reading_time_minutes(text: str) -> int:
    """Return the estimated reading time, rounded up to whole minutes."""

    return math.ceil(count_words(text) / WORDS_PER_MINUTE)


def paragraphs(text: str) -> list[str]:
    return [block for block in _PARAGRAPH_BREAK_RE.split(text or "") if block.strip()]


def snippet(text: str, max_length: int = 60) -> str:
    """Shorten ``text`` to ``max_length`` characters with a trailing ellipsis."""

    if len(text) <= max_length:
        return text
    return text[:max_length].strip() + "..."


def document_stats(text: str) -> DocumentStats:
    return DocumentStats(
        words=count_words(text),
        paragraphs=len(paragraphs(text)),
        reading_time_minutes=reading_time_minutes(text),
    )
