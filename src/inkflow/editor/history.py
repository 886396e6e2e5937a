"""Debounced, branching undo/redo history of (title, content) snapshots.

Two write paths feed the history and must never interfere:

* organic edits arrive through :meth:`UndoRedoManager.push_state` and are
  debounced before they become entries;
* undo/redo replays hand an entry back to the document owner, whose own
  state update then echoes that entry into ``push_state``. Those echoes are
  ignored while the manager is :attr:`ReplayState.REPLAYING` and, after that,
  discarded once when they exactly match the replayed entry.

The manager never touches the document itself; it only returns entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from ..services import telemetry
from .scheduling import AsyncioScheduler, Scheduler, TimerHandle

__all__ = ["HistoryEntry", "ReplayState", "UndoRedoManager"]

LOGGER = logging.getLogger(__name__)

HistoryListener = Callable[["UndoRedoManager"], None]


@dataclass(slots=True, frozen=True)
class HistoryEntry:
    """One snapshot of the document's title and content."""

    title: str
    content: str


class ReplayState(Enum):
    IDLE = "idle"
    REPLAYING = "replaying"


class UndoRedoManager:
    """Owns the history sequence and the replay state machine."""

    def __init__(
        self,
        initial: HistoryEntry,
        *,
        scheduler: Scheduler | None = None,
        max_history_size: int = 50,
        debounce_ms: int = 300,
        replay_settle_ms: int = 100,
        listener: HistoryListener | None = None,
    ) -> None:
        self._entries: list[HistoryEntry] = [initial]
        self._index = 0
        self._scheduler = scheduler or AsyncioScheduler()
        self._max_size = max(1, int(max_history_size))
        self._debounce_seconds = max(0, debounce_ms) / 1000.0
        self._settle_seconds = max(0, replay_settle_ms) / 1000.0
        self._listener = listener
        self._replay_state = ReplayState.IDLE
        self._last_applied: HistoryEntry | None = None
        self._pending: HistoryEntry | None = None
        self._debounce_handle: TimerHandle | None = None
        self._settle_handle: TimerHandle | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def current_state(self) -> HistoryEntry:
        return self._entries[self._index]

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def history_size(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    @property
    def can_undo(self) -> bool:
        return self._index > 0

    @property
    def can_redo(self) -> bool:
        return self._index < len(self._entries) - 1

    @property
    def replay_state(self) -> ReplayState:
        return self._replay_state

    @property
    def is_applying_history(self) -> bool:
        return self._replay_state is ReplayState.REPLAYING

    @property
    def has_pending_push(self) -> bool:
        return self._pending is not None

    # ------------------------------------------------------------------
    # Organic edits
    # ------------------------------------------------------------------
    def push_state(self, entry: HistoryEntry) -> None:
        """Queue ``entry`` for recording once edits pause for the debounce window.

        The entry remembered from the last replay is forgotten on the first
        push after the replay settles, whether or not that push matches it.
        Only an exact match is discarded; any other push is queued as usual.
        """

        if self._replay_state is ReplayState.REPLAYING:
            return
        if self._last_applied is not None:
            echo = self._last_applied
            self._last_applied = None
            if entry == echo:
                LOGGER.debug("Discarding echo of replayed history entry")
                return
        handle = self._scheduler.call_later(self._debounce_seconds, self._on_debounce)
        self._cancel_debounce()
        self._pending = entry
        self._debounce_handle = handle

    def flush(self) -> bool:
        """Record a pending push immediately. Returns ``True`` if one was pending."""

        if self._pending is None:
            return False
        self._cancel_debounce()
        entry, self._pending = self._pending, None
        self._record(entry)
        return True

    # ------------------------------------------------------------------
    # Replays
    # ------------------------------------------------------------------
    def undo(self) -> HistoryEntry | None:
        """Step back one entry and return it, or ``None`` at the oldest entry.

        A pending push is recorded first, so the edit just typed is the one
        undone. With a push pending at index 0 this therefore still steps back.
        """

        self.flush()
        if not self.can_undo:
            return None
        return self._replay(self._index - 1, "undo")

    def redo(self) -> HistoryEntry | None:
        """Step forward one entry. A pending push is recorded first, which discards the redo branch."""

        self.flush()
        if not self.can_redo:
            return None
        return self._replay(self._index + 1, "redo")

    def clear_history(self) -> None:
        """Collapse the history to the current entry."""

        current = self.current_state
        self._entries = [current]
        self._index = 0
        self._last_applied = None
        self._notify()

    def close(self) -> None:
        """Cancel outstanding timers; pending pushes are dropped."""

        self._cancel_debounce()
        self._pending = None
        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None
        self._replay_state = ReplayState.IDLE

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _on_debounce(self) -> None:
        self._debounce_handle = None
        entry, self._pending = self._pending, None
        if entry is not None:
            self._record(entry)

    def _record(self, entry: HistoryEntry) -> None:
        if entry == self._entries[self._index]:
            return
        discarded = len(self._entries) - self._index - 1
        del self._entries[self._index + 1 :]
        self._entries.append(entry)
        self._index = len(self._entries) - 1
        evicted = 0
        while len(self._entries) > self._max_size:
            self._entries.pop(0)
            self._index = max(0, self._index - 1)
            evicted += 1
        if evicted:
            telemetry.emit("history.evicted", {"count": evicted, "size": len(self._entries)})
        telemetry.emit(
            "history.recorded",
            {"index": self._index, "size": len(self._entries), "discarded_redo": discarded},
        )
        self._notify()

    def _replay(self, index: int, direction: str) -> HistoryEntry:
        # Scheduling may raise; state changes only once the settle timer exists.
        settle = self._scheduler.call_later(self._settle_seconds, self._on_settle)
        if self._settle_handle is not None:
            self._settle_handle.cancel()
        self._settle_handle = settle
        self._replay_state = ReplayState.REPLAYING
        self._index = index
        entry = self._entries[index]
        self._last_applied = entry
        telemetry.emit("history.replay", {"direction": direction, "index": index, "size": len(self._entries)})
        self._notify()
        return entry

    def _on_settle(self) -> None:
        self._settle_handle = None
        self._replay_state = ReplayState.IDLE

    def _cancel_debounce(self) -> None:
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    def _notify(self) -> None:
        if self._listener is None:
            return
        try:
            self._listener(self)
        except Exception:  # pragma: no cover - listeners must not break history
            LOGGER.exception("History listener failed")
