"""Typed event bus used by document sessions to notify the editor surface.

The bus is synchronous and single-threaded: handlers run in subscription
order on the caller's thread. Bound-method handlers are held weakly so a
discarded view does not keep receiving events.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all session events."""


@dataclass(slots=True)
class RequestStarted(Event):
    """A command was issued and its selection captured."""

    request_id: str
    command: str
    has_selection: bool


@dataclass(slots=True)
class ReasoningAvailable(Event):
    """Reasoning text for the side panel (streamed or from a final parse).

    Attributes:
        request_id: Request the reasoning belongs to.
        text: Reasoning text, never destined for the document.
        complete: ``False`` for provisional streamed text.
    """

    request_id: str
    text: str
    complete: bool = True


@dataclass(slots=True)
class MutationApplied(Event):
    """The document content changed as a result of a model response."""

    request_id: str
    command: str
    branch: str
    caret: int | None
    message: str
    summary: str = ""


@dataclass(slots=True)
class SuggestionsReady(Event):
    """Context-only output routed to the suggestions panel."""

    request_id: str
    command: str
    suggestions: tuple[str, ...]
    message: str = ""


@dataclass(slots=True)
class RequestDropped(Event):
    """A response was discarded without touching the document."""

    request_id: str
    command: str
    reason: str
    message: str


@dataclass(slots=True)
class HistoryChanged(Event):
    """Undo/redo availability or position changed."""

    current_index: int
    history_size: int
    can_undo: bool
    can_redo: bool


@dataclass(slots=True)
class DocumentReplayed(Event):
    """An undo or redo step replaced the document's title and content."""

    direction: str
    title: str
    content: str


class EventBus(Generic[E]):
    """Synchronous publish/subscribe keyed by event class.

    Example::

        bus = EventBus()
        bus.subscribe(SuggestionsReady, panel.show_suggestions)
        session = DocumentSession(text, scheduler=scheduler, event_bus=bus)

    Delivery is by exact type, in subscription order. A handler that raises
    is logged and the remaining handlers still run.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: dict[type[Event], list[_HandlerRef]] = {}

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        ref = _HandlerRef(handler)
        self._subscriptions.setdefault(event_type, []).append(ref)
        logger.debug("%s subscribed to %s", ref.name, event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> bool:
        """Drop the first registration of ``handler``; returns ``False`` if there was none."""

        refs = self._subscriptions.get(event_type, [])
        for ref in refs:
            if ref.refers_to(handler):
                refs.remove(ref)
                return True
        return False

    def publish(self, event: E) -> None:
        refs = self._subscriptions.get(type(event))
        if not refs:
            return
        dead = False
        for ref in tuple(refs):
            handler = ref()
            if handler is None:
                dead = True
                continue
            try:
                handler(event)
            except Exception:
                logger.exception("Event handler %s failed on %s", ref.name, type(event).__name__)
        if dead:
            refs[:] = [ref for ref in refs if ref() is not None]

    def clear(self) -> None:
        self._subscriptions.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is None:
            return sum(map(len, self._subscriptions.values()))
        return len(self._subscriptions.get(event_type, ()))


class _HandlerRef:
    """Holds a handler weakly when it is a bound method, strongly otherwise."""

    __slots__ = ("_target", "_weak", "name")

    def __init__(self, handler: Handler) -> None:
        owner = getattr(handler, "__self__", None)
        func = getattr(handler, "__func__", None)
        self._target: Any = handler
        self._weak = False
        if func is None:
            self.name = getattr(handler, "__name__", repr(handler))
        else:
            self.name = f"{type(owner).__name__}.{func.__name__}"
        if owner is not None and func is not None:
            try:
                self._target = WeakMethod(handler)  # type: ignore[arg-type]
                self._weak = True
            except TypeError:
                pass

    def __call__(self) -> Handler | None:
        return self._target() if self._weak else self._target

    def refers_to(self, handler: Handler) -> bool:
        current = self()
        return current is not None and current == handler


__all__ = [
    "DocumentReplayed",
    "Event",
    "EventBus",
    "Handler",
    "HistoryChanged",
    "MutationApplied",
    "ReasoningAvailable",
    "RequestDropped",
    "RequestStarted",
    "SuggestionsReady",
]
