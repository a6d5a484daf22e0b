from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Literal, Protocol

Severity = Literal["info", "warning", "critical"]

SEVERITY_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "critical": logging.CRITICAL,
}

DEFAULT_EVENT_LOG_MAX = 50


class EventSink(Protocol):
    def record(self, message: str, severity: Severity, source_tag: str | None = None) -> None: ...


@dataclass(slots=True)
class LogEntry:
    timestamp_ms: float
    severity: Severity
    message: str
    source_tag: str | None = None

    def format(self) -> str:
        tag = f" ({self.source_tag})" if self.source_tag else ""
        return f"[t={self.timestamp_ms / 1000.0:9.1f}s] [{self.severity.upper()}]{tag} {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp_ms": round(self.timestamp_ms, 3),
            "severity": self.severity,
            "message": self.message,
            "source_tag": self.source_tag,
        }


class EventLog:
    """Bounded operational feed. Mirrors every entry to the gameplay logger."""

    def __init__(
        self,
        max_entries: int = DEFAULT_EVENT_LOG_MAX,
        clock: Callable[[], float] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("EventLog requires max_entries >= 1.")
        self._entries: deque[LogEntry] = deque(maxlen=max_entries)
        self._clock = clock or (lambda: 0.0)
        self._logger = logger or logging.getLogger("stairwell_idle.gameplay")
        self.total_recorded = 0

    def bind_clock(self, clock: Callable[[], float]) -> None:
        self._clock = clock

    def record(self, message: str, severity: Severity, source_tag: str | None = None) -> None:
        if severity not in SEVERITY_LEVELS:
            raise ValueError(f"Unknown severity '{severity}'.")
        entry = LogEntry(timestamp_ms=float(self._clock()), severity=severity, message=message, source_tag=source_tag)
        self._entries.append(entry)
        self.total_recorded += 1
        self._logger.log(SEVERITY_LEVELS[severity], "[%s] %s", source_tag or "-", message)

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def tagged(self, source_tag: str) -> list[LogEntry]:
        return [entry for entry in self._entries if entry.source_tag == source_tag]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
