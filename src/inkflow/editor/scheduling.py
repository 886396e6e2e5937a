"""Cancellable timer scheduling on the editor's event loop."""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol

__all__ = ["AsyncioScheduler", "Scheduler", "TimerHandle"]


class TimerHandle(Protocol):
    """Handle to a scheduled callback."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Schedules callbacks after a delay in seconds; never blocks."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioScheduler:
    """:class:`Scheduler` backed by ``loop.call_later``.

    Without an explicit loop the running loop is resolved once, here, so a
    scheduler built outside the event loop fails with :class:`RuntimeError`
    at construction instead of partway through an undo or an edit.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)
