"""
Synchronous event bus and the sink protocol it dispatches to.
"""
from __future__ import annotations

from typing import Any, Iterable, Protocol


class EventSink(Protocol):
    def on_event(self, event: Any) -> None:
        """Consume a domain event."""


class EventBus:
    """Dispatches domain events to registered sinks, in registration order."""

    def __init__(self, sinks: Iterable[EventSink] | None = None) -> None:
        self._sinks: list[EventSink] = list(sinks) if sinks is not None else []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self, sink: EventSink) -> None:
        if self._closed:
            raise RuntimeError("cannot register a sink on a closed event bus")
        self._sinks.append(sink)

    def emit(self, event: Any) -> None:
        if self._closed:
            raise RuntimeError(f"event bus closed; dropped {type(event).__name__}")
        for sink in self._sinks:
            sink.on_event(event)

    def close(self) -> None:
        """Close every sink that exposes close(); idempotent."""
        if self._closed:
            return

        for sink in self._sinks:
            close_fn = getattr(sink, "close", None)
            if callable(close_fn):
                close_fn()

        self._closed = True
