"""
Event sinks: logging, append-only JSONL audit log, in-memory capture, and a
discarding bus for tests.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from checkout_gate.core.events.event_bus import EventBus


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def event_record(event: Any) -> dict[str, Any]:
    """Flatten an event into a JSON-compatible dict tagged with its type."""
    if is_dataclass(event) and not isinstance(event, type):
        body = asdict(event)
    else:
        body = {"event": str(event)}
    return {"type": type(event).__name__, **body}


class LoggingEventSink:
    """Logs domain events using the standard logging module."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def on_event(self, event: Any) -> None:
        self._logger.info("domain_event %s", type(event).__name__, extra={"event": event})


class AuditLogSink:
    """Writes each event as one JSON line to an append-only audit log."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._fh = self._path.open("a", encoding="utf-8")
        self._closed = False

    def on_event(self, event: Any) -> None:
        self._fh.write(json.dumps(event_record(event), default=_json_default, sort_keys=True) + "\n")
        self._fh.flush()

    def close(self) -> None:
        if self._closed:
            return
        self._fh.flush()
        self._fh.close()
        self._closed = True


class MemorySink:
    """Keeps every event in order; useful for inspection in tests."""

    def __init__(self) -> None:
        self.events: list[Any] = []

    def on_event(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, kind: type) -> list[Any]:
        return [e for e in self.events if isinstance(e, kind)]


class _NullSink:
    """Event sink that discards all events."""

    def on_event(self, event: Any) -> None:
        return


class NullEventBus(EventBus):
    """EventBus that discards all events (used for tests)."""

    def __init__(self) -> None:
        super().__init__(sinks=[_NullSink()])
