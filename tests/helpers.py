"""Shared test helpers and stub classes.

Import from here instead of duplicating these classes in individual test files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable


@dataclass
class ManualHandle:
    """Timer handle returned by :class:`ManualScheduler`."""

    due: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """Deterministic scheduler driven by :meth:`advance`.

    Example:
        scheduler = ManualScheduler()
        manager = UndoRedoManager(entry, scheduler=scheduler)
        manager.push_state(other)
        scheduler.advance(0.3)
    """

    now: float = 0.0
    handles: list[ManualHandle] = field(default_factory=list)

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        handle = ManualHandle(due=self.now + max(0.0, delay), callback=callback)
        self.handles.append(handle)
        return handle

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing due callbacks in order."""

        target = self.now + seconds
        while True:
            due = [h for h in self.handles if not h.cancelled and h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = max(self.now, handle.due)
            handle.callback()
        self.now = target
        self.handles = [h for h in self.handles if not h.cancelled]

    @property
    def pending(self) -> int:
        return len([h for h in self.handles if not h.cancelled])


class Recorder:
    """Collects telemetry payloads or bus events passed to it."""

    def __init__(self) -> None:
        self.items: list[Any] = []

    def __call__(self, item: Any) -> None:
        self.items.append(item)

    def of_type(self, kind: type) -> list[Any]:
        return [item for item in self.items if isinstance(item, kind)]

    def named(self, event_name: str) -> list[dict[str, Any]]:
        return [item for item in self.items if isinstance(item, dict) and item.get("event") == event_name]


@dataclass
class FlakyScheduler(ManualScheduler):
    """:class:`ManualScheduler` that raises while :attr:`failing` is set, like a closed loop."""

    failing: bool = False

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualHandle:
        if self.failing:
            raise RuntimeError("Event loop is closed")
        return super().call_later(delay, callback)
