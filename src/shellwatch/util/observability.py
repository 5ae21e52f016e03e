"""Structured events and metrics emitted around command supervision."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from shellwatch.util.logging import get_logger, normalize_level

if TYPE_CHECKING:
    from shellwatch.execution.base import Outcome


@dataclass(frozen=True)
class LogEvent:
    """Structured log event payload.

    Attributes:
        event_type: Machine-readable event name.
        timestamp: Unix timestamp in seconds.
        payload: Structured data associated with the event.
        context: Optional shared context fields.
    """

    event_type: str
    timestamp: float
    payload: dict[str, Any]
    context: dict[str, Any] = field(default_factory=dict)


class EventLogger:
    """Logger that emits one JSON document per event."""

    def __init__(self, logger_name: str, context: dict[str, Any] | None = None) -> None:
        """Initialize the event logger.

        Args:
            logger_name: Logger name used for output.
            context: Optional shared context to attach to every event.
        """

        self._logger = get_logger(logger_name)
        self._context = context or {}

    def log(
        self,
        event_type: str,
        payload: dict[str, Any],
        *,
        level: str = "INFO",
        context: dict[str, Any] | None = None,
    ) -> LogEvent:
        """Emit a structured log event.

        Args:
            event_type: Machine-readable event name.
            payload: Structured event data.
            level: Logging level string (default: INFO).
            context: Optional context overrides for this event.

        Returns:
            The event that was emitted.
        """

        event = LogEvent(
            event_type=event_type,
            timestamp=time.time(),
            payload=payload,
            context={**self._context, **(context or {})},
        )
        message = json.dumps(event.__dict__, sort_keys=True, default=str)
        self._logger.log(normalize_level(level), message)
        return event


@dataclass
class MetricsCollector:
    """Counters and duration samples for supervised commands.

    Safe to share between supervisors running on background threads.
    """

    counters: dict[str, int] = field(default_factory=dict)
    durations: dict[str, list[float]] = field(default_factory=dict)
    _lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False, compare=False
    )

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] = self.counters.get(name, 0) + value

    def record_duration(self, name: str, duration_s: float) -> None:
        with self._lock:
            self.durations.setdefault(name, []).append(duration_s)

    def snapshot(self) -> dict[str, Any]:
        """Return counters plus count/total/avg/max per duration metric."""

        with self._lock:
            counters = dict(self.counters)
            durations = {name: list(values) for name, values in self.durations.items()}
        duration_summary: dict[str, dict[str, float]] = {}
        for name, values in durations.items():
            total = sum(values)
            count = len(values)
            duration_summary[name] = {
                "count": float(count),
                "total_s": total,
                "avg_s": total / count if count else 0.0,
                "max_s": max(values, default=0.0),
            }
        return {"counters": counters, "durations": duration_summary}


@dataclass(frozen=True)
class ObservabilityManager:
    """Records what happens to supervised commands.

    Every finished command produces a ``command.finished`` event, bumps the
    ``commands.<reason>`` counter (plus ``commands.errors`` when errors were
    recorded) and adds a ``commands.duration`` sample.
    """

    events: EventLogger
    metrics: MetricsCollector

    def command_started(self, command: list[str], pid: int) -> None:
        self.events.log("command.started", {"command": command, "pid": pid})
        self.metrics.increment("commands.started")

    def command_finished(self, outcome: Outcome) -> None:
        reason = outcome.completion_reason.value
        level = "WARNING" if outcome.is_error else "INFO"
        self.events.log(
            "command.finished",
            {
                "command": outcome.command,
                "pid": outcome.pid,
                "reason": reason,
                "exit_code": outcome.exit_code,
                "duration_s": round(outcome.duration_s, 6),
                "killed": outcome.killed,
                "errors": [str(error) for error in outcome.errors],
            },
            level=level,
        )
        self.metrics.increment(f"commands.{reason}")
        if outcome.is_error:
            self.metrics.increment("commands.errors")
        self.metrics.record_duration("commands.duration", outcome.duration_s)


def create_observability_manager() -> ObservabilityManager:
    """Create a default observability manager with standard loggers."""

    return ObservabilityManager(
        events=EventLogger("shellwatch.events"),
        metrics=MetricsCollector(),
    )
