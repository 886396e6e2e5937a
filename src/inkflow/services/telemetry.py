"""In-process telemetry for pipeline events.

Stages report small structured payloads (lengths, counts, branch names, never
document text) under dotted event names such as ``response.parsed``. Hosts
subscribe per event name; a listener that raises is logged and skipped.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

LOGGER = logging.getLogger(__name__)

TelemetryListener = Callable[[dict[str, Any]], None]


class TelemetryHub:
    """Fans named events out to the listeners registered for them."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[TelemetryListener]] = {}

    def register(self, event_name: str, listener: TelemetryListener) -> None:
        if not event_name or listener is None:
            return
        bucket = self._listeners.setdefault(event_name, [])
        if listener not in bucket:
            bucket.append(listener)

    def unregister(self, event_name: str, listener: TelemetryListener) -> None:
        bucket = self._listeners.get(event_name)
        if bucket is None or listener not in bucket:
            return
        bucket.remove(listener)
        if not bucket:
            del self._listeners[event_name]

    def clear(self) -> None:
        self._listeners.clear()

    def emit(self, event_name: str, payload: Mapping[str, Any] | None = None) -> None:
        if not event_name:
            return
        record: dict[str, Any] = {"event": event_name, **(payload or {})}
        for listener in tuple(self._listeners.get(event_name, ())):
            try:
                listener(dict(record))
            except Exception:  # pragma: no cover - listeners must not break emitters
                LOGGER.debug("Telemetry listener %r failed for %s", listener, event_name, exc_info=True)
        LOGGER.debug("telemetry %s %s", event_name, record)


_HUB = TelemetryHub()


def register_event_listener(event_name: str, listener: TelemetryListener) -> None:
    """Call ``listener`` with a copy of the payload whenever ``event_name`` is emitted."""

    _HUB.register(event_name, listener)


def unregister_event_listener(event_name: str, listener: TelemetryListener) -> None:
    _HUB.unregister(event_name, listener)


def clear_event_listeners() -> None:
    _HUB.clear()


def emit(event_name: str, payload: Mapping[str, Any] | None = None) -> None:
    _HUB.emit(event_name, payload)


__all__ = [
    "TelemetryHub",
    "TelemetryListener",
    "clear_event_listeners",
    "emit",
    "register_event_listener",
    "unregister_event_listener",
]
