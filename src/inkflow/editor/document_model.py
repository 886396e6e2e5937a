"""The live document owned by a session."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from .history import HistoryEntry


def _digest(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


@dataclass(slots=True)
class SelectionRange:
    """Caret (``start == end``) or selection offsets in the live document."""

    start: int = 0
    end: int = 0

    @property
    def is_caret(self) -> bool:
        return self.start == self.end

    def as_tuple(self) -> tuple[int, int]:
        return self.start, self.end


@dataclass(slots=True)
class DocumentState:
    """Title, text and caret of the document being edited.

    ``version_id`` grows by one on every text change, which lets a request
    tell whether the document moved on after its selection was captured.
    """

    text: str = ""
    title: str = "Untitled Document"
    selection: SelectionRange = field(default_factory=SelectionRange)
    version_id: int = 1
    dirty: bool = False
    document_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    modified_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def content_hash(self) -> str:
        return _digest(self.text)

    def update_text(self, text: str) -> bool:
        """Replace the text; returns ``False`` (and keeps the version) when nothing changed."""

        if text == self.text:
            return False
        self.text = text
        self.version_id += 1
        self._touch()
        return True

    def rename(self, title: str) -> None:
        self.title = title
        self._touch()

    def collapse_selection(self, caret: int | None = None) -> None:
        """Place a caret at ``caret`` (clamped), or at the end of the text."""

        length = len(self.text)
        position = length if caret is None else max(0, min(int(caret), length))
        self.selection = SelectionRange(position, position)

    def history_entry(self) -> HistoryEntry:
        return HistoryEntry(title=self.title, content=self.text)

    def snapshot(self) -> dict[str, Any]:
        """Serializable view for the host surface."""

        return {
            "document_id": self.document_id,
            "title": self.title,
            "text": self.text,
            "selection": self.selection.as_tuple(),
            "version_id": self.version_id,
            "content_hash": self.content_hash,
            "dirty": self.dirty,
        }

    def _touch(self) -> None:
        self.dirty = True
        self.modified_at = datetime.now(timezone.utc)
