"""Event-log port.

Operator-facing events (extraction finished, backup created, table migrated,
...) are reported through ``EventLog`` rather than straight to a logger so
the surrounding system can persist them next to the project.
"""

import logging
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@runtime_checkable
class EventLog(Protocol):
    """Sink for per-project events."""

    async def log(
        self,
        project_id: str,
        severity: Severity,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        ...


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingEventLog:
    """``EventLog`` that forwards to the ``secure_migrator.events`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("secure_migrator.events")

    async def log(
        self,
        project_id: str,
        severity: Severity,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self._logger.log(
            _LEVELS[Severity(severity)],
            "[%s] %s",
            project_id,
            message,
            extra={"project_id": project_id, "details": details or {}},
        )
