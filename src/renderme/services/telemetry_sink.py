"""Structured telemetry for the chat pipeline.

Events and metrics go to the ``renderme.telemetry`` and ``renderme.metrics``
loggers; the most recent events are also kept in memory so diagnostics and
tests can inspect what a turn reported.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Deque, Dict, List, Optional

_events_log = logging.getLogger("renderme.telemetry")
_metrics_log = logging.getLogger("renderme.metrics")

BUFFER_SIZE = 200


@dataclass(frozen=True)
class TelemetryEvent:
    name: str
    properties: Dict[str, Any] = field(default_factory=dict)
    actor: Optional[str] = None


class _EventBuffer:
    def __init__(self, size: int) -> None:
        self._items: Deque[TelemetryEvent] = deque(maxlen=size)
        self._lock = Lock()

    def push(self, event: TelemetryEvent) -> None:
        with self._lock:
            self._items.append(event)

    def tail(self, limit: int) -> List[TelemetryEvent]:
        with self._lock:
            items = list(self._items)
        return items[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._items.clear()


_buffer = _EventBuffer(BUFFER_SIZE)


def record_event(event: TelemetryEvent) -> None:
    _buffer.push(event)
    _events_log.info(
        "event %s",
        event.name,
        extra={"event_name": event.name, "event_actor": event.actor, "event_properties": event.properties},
    )


def list_recent_events(limit: int = 50) -> List[TelemetryEvent]:
    return _buffer.tail(limit) if limit > 0 else []


def clear_events() -> None:
    _buffer.clear()


def record_metric(
    *,
    name: str,
    value: float,
    properties: Optional[Dict[str, Any]] = None,
    metric_type: str = "gauge",
) -> None:
    """Log one metric sample.

    ``metric_type`` is ``"gauge"`` or ``"counter"``; ``properties`` carries
    dimensions such as ``intent`` or ``generator_id``.
    """
    _metrics_log.info(
        "metric %s=%s",
        name,
        value,
        extra={
            "metric_name": name,
            "metric_value": value,
            "metric_type": metric_type,
            "metric_labels": dict(properties or {}),
        },
    )
