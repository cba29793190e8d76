"""Migration status models and the per-project status board.

A ``MigrationStatus`` is frozen: every progress tick publishes a new object
instead of mutating the old one, so a reader holding a reference always sees
a complete status.  The board serializes writers with an ``asyncio.Lock``;
readers take no lock.

Usage:
    board = MigrationStatusBoard()
    await board.start_if_idle("p1", MigrationStatus.started(["users", "orders"], run_id))

    status = board.get("p1")
    print(status.state, status.progress.percentage)
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class MigrationState(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"


class MigrationProgress(BaseModel):
    """Counters of a migration run."""

    model_config = ConfigDict(frozen=True)

    total_tables: int = 0
    completed_tables: int = 0
    processed_records: int = 0
    total_records: int = 0
    current_table: str | None = None
    percentage: int = Field(default=0, ge=0, le=100)
    elapsed_seconds: float = 0.0
    estimated_remaining_seconds: float | None = None


class MigrationErrorEntry(BaseModel):
    """One table's transfer failure."""

    model_config = ConfigDict(frozen=True)

    table: str
    message: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MigrationStatus(BaseModel):
    """Pollable state of a project's migration."""

    model_config = ConfigDict(frozen=True)

    state: MigrationState = MigrationState.PENDING
    progress: MigrationProgress = Field(default_factory=MigrationProgress)
    errors: tuple[MigrationErrorEntry, ...] = ()
    run_id: str | None = None

    @classmethod
    def started(cls, tables: list[str], run_id: str | None = None) -> "MigrationStatus":
        """Initial status of a run over ``tables``."""
        return cls(
            state=MigrationState.IN_PROGRESS,
            run_id=run_id,
            progress=MigrationProgress(
                total_tables=len(tables),
                current_table=tables[0] if tables else None,
            ),
        )

    @property
    def is_running(self) -> bool:
        return self.state == MigrationState.IN_PROGRESS

    def evolve(self, **progress_changes) -> "MigrationStatus":
        """Copy with updated progress counters."""
        return self.model_copy(
            update={"progress": self.progress.model_copy(update=progress_changes)}
        )


class MigrationStatusBoard:
    """Latest ``MigrationStatus`` per project id."""

    def __init__(self) -> None:
        self._statuses: dict[str, MigrationStatus] = {}
        self._lock = asyncio.Lock()

    def get(self, project_id: str) -> MigrationStatus | None:
        return self._statuses.get(project_id)

    def is_current_run(self, project_id: str, run_id: str) -> bool:
        current = self._statuses.get(project_id)
        return current is not None and current.is_running and current.run_id == run_id

    async def publish_if_running(
        self,
        project_id: str,
        update: Callable[[MigrationStatus], MigrationStatus],
        run_id: str | None = None,
    ) -> MigrationStatus | None:
        """Apply ``update`` only while the current status is in progress.

        Args:
            project_id: Project whose status is updated.
            update: Builds the new status from the current one.
            run_id: When given, the current status must also belong to this
                run; a stale run never writes over a newer one.

        Returns:
            The published status, or ``None`` when the run is no longer in
            progress (e.g. it was cancelled) and nothing was written.
        """
        async with self._lock:
            current = self._statuses.get(project_id)
            if current is None or not current.is_running:
                return None
            if run_id is not None and current.run_id != run_id:
                return None
            new_status = update(current)
            self._statuses[project_id] = new_status
            return new_status

    async def start_if_idle(self, project_id: str, status: MigrationStatus) -> bool:
        """Publish an initial status unless a run is already in progress."""
        async with self._lock:
            current = self._statuses.get(project_id)
            if current is not None and current.is_running:
                return False
            self._statuses[project_id] = status
            return True

    def discard(self, project_id: str) -> None:
        self._statuses.pop(project_id, None)
