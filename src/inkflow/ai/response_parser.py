"""Recover structured intent from raw model output.

Model responses arrive as loosely tagged text: zero or more reasoning blocks
(``<thinking>``, ``<think>``, ...), optionally one ``<final_output>`` block,
otherwise free-form prose that may still carry stray markup. The parser
splits that into document content, side-panel reasoning and, for
context-only commands, suggestions.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Sequence

from ..editor.selection_context import SelectionInfo
from ..services import telemetry
from ..services.settings import PipelineSettings
from .strategies import Strategy, StrategyResolver, default_resolver

__all__ = [
    "FINAL_OUTPUT_TAG",
    "PARSE_FAILURE_MESSAGE",
    "REASONING_TAG_ALIASES",
    "THINKING_SEPARATOR",
    "ParsedResponse",
    "ResponseParser",
    "build_block_pattern",
    "extract_reasoning",
    "strip_markup",
]

LOGGER = logging.getLogger(__name__)

# Historical aliases models use for chain-of-thought blocks.
REASONING_TAG_ALIASES: tuple[str, ...] = ("thinking", "think", "thinkpad", "reasoning")
FINAL_OUTPUT_TAG = "final_output"
THINKING_SEPARATOR = "\n\n---\n\n"

PARSE_FAILURE_MESSAGE = """**Error**: The AI response could not be processed. This might be due to:
- Network connectivity issues
- AI service temporarily unavailable
- Malformed response from the AI

Please try the command again. If the problem persists, try:
- Selecting less text
- Using a simpler command like /fix or /improve
- Checking your internet connection"""

_GENERIC_TAG_RE = re.compile(r"</?[a-zA-Z][^>]*>")
_EXCESS_NEWLINES_RE = re.compile(r"\n\s*\n\s*\n")


def build_block_pattern(tags: Sequence[str]) -> re.Pattern[str]:
    """Compile one matcher for ``<tag ...>body</tag>`` over every alias in ``tags``.

    Longer names are tried first so ``thinking`` is never read as ``think``.
    The closing tag must repeat the opening name (case-insensitively).
    """

    names = sorted({tag.lower() for tag in tags if tag}, key=len, reverse=True)
    if not names:
        raise ValueError("At least one tag name is required")
    alternation = "|".join(re.escape(name) for name in names)
    return re.compile(
        rf"<(?P<tag>{alternation})(?:\s[^>]*)?>(?P<body>.*?)</(?P=tag)\s*>",
        re.IGNORECASE | re.DOTALL,
    )


_REASONING_RE = build_block_pattern(REASONING_TAG_ALIASES)
_FINAL_OUTPUT_RE = build_block_pattern((FINAL_OUTPUT_TAG,))
_FINAL_OUTPUT_MARKER_RE = re.compile(rf"</?{FINAL_OUTPUT_TAG}\s*>", re.IGNORECASE)


@dataclass(slots=True)
class ParsedResponse:
    """Structured view of one completed model response."""

    content: str
    strategy: Strategy
    thinking: str | None = None
    suggestions: list[str] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_context_only(self) -> bool:
        return self.strategy is Strategy.CONTEXT_ONLY

    @property
    def parse_failed(self) -> bool:
        return bool(self.metadata.get("parse_failed"))


def extract_reasoning(text: str, pattern: re.Pattern[str] = _REASONING_RE) -> tuple[str | None, str]:
    """Split reasoning blocks out of ``text``.

    Returns ``(thinking, cleaned_text)``. ``thinking`` is ``None`` when no
    block matched; otherwise the stripped block bodies joined in document
    order with :data:`THINKING_SEPARATOR`.
    """

    blocks = [match.group("body").strip() for match in pattern.finditer(text)]
    if not blocks:
        return None, text
    cleaned = pattern.sub("", text)
    return THINKING_SEPARATOR.join(blocks), cleaned


def strip_markup(text: str) -> str:
    """Remove tag-like markup while keeping inner text, then tidy blank lines."""

    swept = _FINAL_OUTPUT_MARKER_RE.sub("", text)
    swept = _GENERIC_TAG_RE.sub("", swept)
    swept = _EXCESS_NEWLINES_RE.sub("\n\n", swept)
    return swept.strip()


class ResponseParser:
    """Turns raw model text into a :class:`ParsedResponse`.

    ``parse`` never raises. Anything unexpected degrades to a context-only
    diagnostic so unintelligible text never lands in the document.
    """

    def __init__(
        self,
        *,
        resolver: StrategyResolver | None = None,
        settings: PipelineSettings | None = None,
        reasoning_aliases: Sequence[str] = REASONING_TAG_ALIASES,
    ) -> None:
        self._resolver = resolver or default_resolver()
        self._settings = settings or PipelineSettings()
        if tuple(reasoning_aliases) == REASONING_TAG_ALIASES:
            self._reasoning_re = _REASONING_RE
        else:
            self._reasoning_re = build_block_pattern(reasoning_aliases)

    @property
    def resolver(self) -> StrategyResolver:
        return self._resolver

    def parse(
        self,
        raw_text: str,
        command: str,
        original_content: str = "",
        selection: SelectionInfo | None = None,
    ) -> ParsedResponse:
        try:
            return self._parse(raw_text, command)
        except Exception:
            LOGGER.exception("Response parsing failed for command %r", command)
            telemetry.emit("response.parse_failed", {"command": command, "reason": "exception"})
            return self._failure(thinking=None, reason="exception")

    def _parse(self, raw_text: str, command: str) -> ParsedResponse:
        raw = raw_text if isinstance(raw_text, str) else ""
        LOGGER.debug("Parsing response for command %r (%d chars)", command, len(raw))

        thinking, cleaned = extract_reasoning(raw, self._reasoning_re)
        final_match = _FINAL_OUTPUT_RE.search(cleaned)
        if final_match is not None:
            content = final_match.group("body").strip()
            source = "final_output"
        else:
            content = strip_markup(cleaned)
            source = "swept"

        if not content and self._resolver.is_complex_edit(command):
            # Rewrite commands answer in prose; only the reserved tags go.
            _, fallback = extract_reasoning(raw, self._reasoning_re)
            content = _FINAL_OUTPUT_MARKER_RE.sub("", fallback).strip()
            source = "raw_fallback"

        if not content:
            LOGGER.warning("No content extracted for command %r", command)
            telemetry.emit("response.parse_failed", {"command": command, "reason": "empty"})
            return self._failure(thinking=thinking, reason="empty")

        metadata: dict[str, Any] = {"source": source}
        limit = self._settings.max_content_length
        if len(content) > limit:
            LOGGER.warning("Content length %d exceeds maximum %d, truncating", len(content), limit)
            telemetry.emit("response.truncated", {"command": command, "length": len(content), "limit": limit})
            content = content[:limit] + self._settings.truncation_notice
            metadata["truncated"] = True

        strategy = self._resolver.resolve(command)
        suggestions = [content] if strategy is Strategy.CONTEXT_ONLY else None
        telemetry.emit(
            "response.parsed",
            {
                "command": command,
                "strategy": strategy.value,
                "source": source,
                "content_length": len(content),
                "thinking_length": len(thinking or ""),
            },
        )
        return ParsedResponse(
            content=content,
            strategy=strategy,
            thinking=thinking,
            suggestions=suggestions,
            metadata=metadata,
        )

    @staticmethod
    def _failure(*, thinking: str | None, reason: str) -> ParsedResponse:
        return ParsedResponse(
            content=PARSE_FAILURE_MESSAGE,
            strategy=Strategy.CONTEXT_ONLY,
            thinking=thinking,
            suggestions=[PARSE_FAILURE_MESSAGE],
            metadata={"parse_failed": True, "reason": reason},
        )
