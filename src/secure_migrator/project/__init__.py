"""Project record, state machine, storage and event-log ports."""

from secure_migrator.project.events import EventLog, LoggingEventLog, Severity
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import (
    InMemoryProjectStore,
    JsonFileProjectStore,
    ProjectStore,
)

__all__ = [
    "EventLog",
    "LoggingEventLog",
    "Severity",
    "Project",
    "ProjectState",
    "ProjectStore",
    "InMemoryProjectStore",
    "JsonFileProjectStore",
]
