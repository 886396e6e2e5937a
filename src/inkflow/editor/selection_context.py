"""Read-only selection snapshots captured at action time."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Protocol

__all__ = [
    "SelectionContextExtractor",
    "SelectionInfo",
    "SelectionSource",
    "capture_selection",
]


@dataclass(slots=True, frozen=True)
class SelectionInfo:
    """Immutable view of the caret/selection and its surrounding text.

    At capture time ``before_selection + selected_text + after_selection``
    equals the document content.
    """

    selected_text: str
    selection_start: int
    selection_end: int
    before_selection: str
    after_selection: str

    @property
    def has_selection(self) -> bool:
        return bool(self.selected_text)

    @property
    def is_caret(self) -> bool:
        return self.selection_start == self.selection_end

    def is_well_formed(self) -> bool:
        """Return ``True`` when offsets agree with the captured strings."""

        start, end = self.selection_start, self.selection_end
        if not isinstance(start, int) or not isinstance(end, int):
            return False
        if start < 0 or end < start:
            return False
        return len(self.before_selection) == start and len(self.selected_text) == end - start

    def matches(self, content: str) -> bool:
        """Return ``True`` if this selection still describes ``content`` exactly."""

        if not self.is_well_formed():
            return False
        return (
            len(content) == len(self.before_selection) + len(self.selected_text) + len(self.after_selection)
            and content.startswith(self.before_selection)
            and content.endswith(self.after_selection)
            and content[self.selection_start : self.selection_end] == self.selected_text
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "selected_text": self.selected_text,
            "selection_start": self.selection_start,
            "selection_end": self.selection_end,
            "before_selection": self.before_selection,
            "after_selection": self.after_selection,
        }

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "SelectionInfo":
        """Build a selection from a host payload (snake_case or camelCase keys)."""

        def _pick(snake: str, camel: str, default: Any) -> Any:
            if snake in payload:
                return payload[snake]
            return payload.get(camel, default)

        return cls(
            selected_text=str(_pick("selected_text", "selectedText", "") or ""),
            selection_start=_coerce_int(_pick("selection_start", "selectionStart", 0)),
            selection_end=_coerce_int(_pick("selection_end", "selectionEnd", 0)),
            before_selection=str(_pick("before_selection", "beforeSelection", "") or ""),
            after_selection=str(_pick("after_selection", "afterSelection", "") or ""),
        )


class SelectionSource(Protocol):
    """Protocol implemented by editor surfaces that expose a live selection."""

    def text(self) -> str:
        ...

    def selection_span(self) -> tuple[int, int] | None:
        ...


def capture_selection(content: str, start: int | None = None, end: int | None = None) -> SelectionInfo:
    """Capture a :class:`SelectionInfo` for ``content``.

    Offsets are clamped into the document and swapped when reversed. With no
    offsets the caret sits at the end of the document.
    """

    content = content or ""
    length = len(content)
    if start is None and end is None:
        start = end = length
    elif start is None:
        start = end
    elif end is None:
        end = start
    begin, finish = _clamp_range(start, end, length)
    return SelectionInfo(
        selected_text=content[begin:finish],
        selection_start=begin,
        selection_end=finish,
        before_selection=content[:begin],
        after_selection=content[finish:],
    )


class SelectionContextExtractor:
    """Captures selection snapshots from a :class:`SelectionSource`."""

    def __init__(self, source: SelectionSource) -> None:
        self._source = source

    def capture(self) -> SelectionInfo:
        span = self._source.selection_span()
        text = self._source.text()
        if span is None:
            return capture_selection(text)
        return capture_selection(text, *span)


def _clamp_range(start: Any, end: Any, length: int) -> tuple[int, int]:
    start = max(0, min(_coerce_int(start), length))
    end = max(0, min(_coerce_int(end), length))
    if end < start:
        start, end = end, start
    return start, end


def _coerce_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0
