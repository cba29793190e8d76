"""Background migration executor.

One ``asyncio.Task`` per project copies every table of the snapshot from the
source database into the target document store:

1. Count rows per table to size the run.
2. For each table in snapshot order: clear the target collection, then read
   ``batch_size`` rows at a time, apply the obfuscation rules, and insert
   the documents.  Reads and writes are bounded by the connection timeouts.
3. After every batch publish a new ``MigrationStatus`` to the board.

A table that fails is recorded in ``errors`` and the run moves on.  A run in
which every table failed ends in ``error``; otherwise it ends ``completed``.

Cancellation is cooperative: ``cancel`` flips the status to ``pending`` and
the task exits at the next batch boundary without publishing anything
further.  A later ``start`` waits for that task to stop, then begins again
from the first table.

Usage:
    executor = MigrationExecutor(project_store, event_log)
    await executor.start(project_id)

    status = executor.status(project_id)
    await executor.wait(project_id)
"""

import asyncio
import logging
import math
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

from secure_migrator.adapters.base import SourceAdapter, TargetClient
from secure_migrator.config.models import SourceConnection, TargetConnection
from secure_migrator.errors import StateError, TransientMigrationError
from secure_migrator.factory import get_source_adapter, get_target_client
from secure_migrator.migration.status import (
    MigrationErrorEntry,
    MigrationState,
    MigrationStatus,
    MigrationStatusBoard,
)
from secure_migrator.obfuscation.engine import obfuscate_rows
from secure_migrator.project.events import EventLog, Severity
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import ProjectStore
from secure_migrator.schema.models import TableDescriptor

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_percentage(done_records: int, total_records: int) -> int:
    """``floor(done / total * 100)`` clamped to ``[0, 100]``."""
    if total_records <= 0:
        return 0
    return max(0, min(100, math.floor(done_records / total_records * 100)))


def estimate_remaining(elapsed: float, done_records: int, total_records: int) -> float | None:
    """Linear ETA from the throughput so far."""
    if done_records <= 0 or total_records <= done_records:
        return None if done_records <= 0 else 0.0
    return elapsed / done_records * (total_records - done_records)


class _RunCancelled(Exception):
    """Raised inside a run once its status is no longer in progress."""


class MigrationExecutor:
    """Starts, cancels and reports migration runs.

    Args:
        project_store: Where projects are read and saved.
        event_log: Sink for operator-facing events.
        board: Live status per project (a fresh one when omitted).
        source_factory: Builds the source adapter for a connection.
        target_factory: Builds the target client for a connection.
        clock: Monotonic clock used for elapsed time and ETA.
    """

    def __init__(
        self,
        project_store: ProjectStore,
        event_log: EventLog,
        board: MigrationStatusBoard | None = None,
        source_factory: Callable[[SourceConnection], SourceAdapter] = get_source_adapter,
        target_factory: Callable[[TargetConnection], TargetClient] = get_target_client,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._projects = project_store
        self._events = event_log
        self._board = board or MigrationStatusBoard()
        self._source_factory = source_factory
        self._target_factory = target_factory
        self._clock = clock
        self._tasks: dict[str, asyncio.Task] = {}

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def start(self, project_id: str) -> MigrationStatus:
        """Start a migration run in the background.

        Returns:
            The initial ``in_progress`` status.

        Raises:
            StateError: If the schema, source, backup or target is missing,
                or a run is already in progress for the project.
        """
        project = await self._projects.get(project_id)
        if project.snapshot is None:
            raise StateError("Cannot start migration: the schema has not been extracted")
        if project.source_connection is None:
            raise StateError("Cannot start migration: no source connection is configured")
        if project.latest_backup is None:
            raise StateError("Cannot start migration: create a backup first")
        if project.target_connection is None:
            raise StateError("Cannot start migration: no target connection is configured")

        previous = self._tasks.get(project_id)
        if previous is not None and not previous.done():
            current = self._board.get(project_id)
            if current is not None and current.is_running:
                raise StateError(
                    f"A migration is already in progress for project {project.code}"
                )
            # A cancelled run stops at its next batch boundary
            await asyncio.shield(previous)

        tables = project.snapshot.table_names
        run_id = uuid.uuid4().hex
        status = MigrationStatus.started(tables, run_id)
        if not await self._board.start_if_idle(project_id, status):
            raise StateError(
                f"A migration is already in progress for project {project.code}"
            )

        project.state = ProjectState.MIGRATION
        project.migration_status = status
        try:
            await self._projects.save(project)
        except Exception:
            self._board.discard(project_id)
            raise

        await self._events.log(
            project_id,
            Severity.INFO,
            "Migration started",
            {
                "backup_id": project.latest_backup.id,
                "tables": len(tables),
                "target": project.target_connection.database_name,
            },
        )

        task = asyncio.create_task(
            self._run(project, run_id), name=f"migration-{project_id}"
        )
        self._tasks[project_id] = task
        task.add_done_callback(lambda t: self._forget(project_id, t))
        return status

    async def cancel(self, project_id: str) -> MigrationStatus:
        """Stop a running migration; counters are preserved.

        Raises:
            StateError: If no migration is in progress.
        """
        cancelled = await self._board.publish_if_running(
            project_id,
            lambda s: s.model_copy(update={"state": MigrationState.PENDING}),
        )
        if cancelled is None:
            raise StateError("Cannot cancel: no migration is in progress")

        project = await self._projects.get(project_id)
        project.state = ProjectState.BACKUP
        project.migration_status = cancelled
        await self._projects.save(project)

        await self._events.log(
            project_id,
            Severity.WARNING,
            "Migration cancelled",
            {
                "processed_records": cancelled.progress.processed_records,
                "completed_tables": cancelled.progress.completed_tables,
            },
        )
        return cancelled

    def status(self, project_id: str) -> MigrationStatus | None:
        """Latest published status (lock-free read)."""
        return self._board.get(project_id)

    async def wait(self, project_id: str) -> None:
        """Wait for the project's background run to finish, if any."""
        task = self._tasks.get(project_id)
        if task is not None:
            await asyncio.shield(task)

    def is_running(self, project_id: str) -> bool:
        task = self._tasks.get(project_id)
        return task is not None and not task.done()

    def _forget(self, project_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(project_id) is task:
            del self._tasks[project_id]

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def _run(self, project: Project, run_id: str) -> None:
        project_id = project.id
        source_conn = project.source_connection
        target_conn = project.target_connection
        snapshot = project.snapshot
        config = project.obfuscation_config or {}
        started = self._clock()

        source = None
        target = None
        try:
            source = self._source_factory(source_conn)
            target = self._target_factory(target_conn)

            counts: dict[str, int] = {}
            failures: dict[str, str] = {}
            for table in snapshot.table_names:
                try:
                    counts[table] = await self._bounded(
                        source.count_rows(table), source_conn.timeout_seconds, table
                    )
                except TransientMigrationError as e:
                    counts[table] = 0
                    failures[table] = e.reason

            total_records = sum(counts.values())
            await self._publish(
                project_id, run_id, lambda s: s.evolve(total_records=total_records)
            )

            settled = 0
            completed = 0
            failed = 0
            for table in snapshot.table_names:
                await self._publish(
                    project_id, run_id, lambda s, t=table: s.evolve(current_table=t)
                )
                try:
                    if table in failures:
                        raise TransientMigrationError(table, failures[table])
                    await self._transfer_table(
                        project_id,
                        run_id,
                        table,
                        snapshot.tables[table],
                        source,
                        target,
                        source_conn,
                        target_conn,
                        config.get(table, {}),
                        settled,
                        total_records,
                        started,
                    )
                except TransientMigrationError as e:
                    failed += 1
                    settled += counts[table]
                    await self._record_failure(project_id, run_id, e, settled, total_records)
                    continue

                completed += 1
                settled += counts[table]
                await self._publish(
                    project_id,
                    run_id,
                    lambda s, c=completed, d=settled: s.evolve(
                        completed_tables=c,
                        processed_records=d,
                        percentage=compute_percentage(d, total_records),
                    ),
                )
                await self._events.log(
                    project_id,
                    Severity.INFO,
                    f"Table {table} migrated",
                    {"table": table, "records": counts[table]},
                )

            all_failed = bool(snapshot.table_names) and failed == len(snapshot.table_names)
            await self._finish(project_id, run_id, all_failed, started)

        except _RunCancelled:
            logger.info("Migration run %s for project %s stopped", run_id, project_id)
        except Exception as e:
            logger.exception("Migration run %s for project %s crashed", run_id, project_id)
            await self._abort(project_id, run_id, str(e))
        finally:
            for client in (source, target):
                if client is not None:
                    try:
                        await client.close()
                    except Exception as e:
                        logger.warning("Error closing migration connection: %s", e)

    async def _transfer_table(
        self,
        project_id: str,
        run_id: str,
        table: str,
        table_desc: TableDescriptor,
        source: SourceAdapter,
        target: TargetClient,
        source_conn: SourceConnection,
        target_conn: TargetConnection,
        rules: dict,
        settled: int,
        total_records: int,
        started: float,
    ) -> int:
        data_types = {c.name: c.data_type for c in table_desc.columns}
        order_by = table_desc.primary_key
        collection = target_conn.collection_for(table)
        batch_size = target_conn.batch_size

        await self._bounded(
            target.prepare_collection(collection), target_conn.timeout_seconds, table
        )

        offset = 0
        while True:
            if not self._board.is_current_run(project_id, run_id):
                raise _RunCancelled()

            rows = await self._bounded(
                source.fetch_batch(table, offset, batch_size, order_by),
                source_conn.timeout_seconds,
                table,
            )
            if not rows:
                break

            documents = obfuscate_rows(rows, rules, data_types)
            if not self._board.is_current_run(project_id, run_id):
                raise _RunCancelled()

            await self._bounded(
                target.insert_many(collection, documents),
                target_conn.timeout_seconds,
                table,
            )
            offset += len(rows)

            done = settled + offset
            elapsed = self._clock() - started
            await self._publish(
                project_id,
                run_id,
                lambda s: s.evolve(
                    processed_records=done,
                    percentage=compute_percentage(done, total_records),
                    elapsed_seconds=elapsed,
                    estimated_remaining_seconds=estimate_remaining(
                        elapsed, done, total_records
                    ),
                ),
            )

            if len(rows) < batch_size:
                break

        return offset

    async def _bounded(self, awaitable: Awaitable[T], timeout: float, table: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except TimeoutError:
            raise TransientMigrationError(table, f"Timed out after {timeout}s")
        except TransientMigrationError:
            raise
        except Exception as e:
            raise TransientMigrationError(table, str(e))

    async def _publish(self, project_id: str, run_id: str, update) -> MigrationStatus:
        status = await self._board.publish_if_running(project_id, update, run_id)
        if status is None:
            raise _RunCancelled()
        return status

    async def _record_failure(
        self,
        project_id: str,
        run_id: str,
        error: TransientMigrationError,
        settled: int,
        total_records: int,
    ) -> None:
        entry = MigrationErrorEntry(table=error.table, message=error.reason)
        await self._publish(
            project_id,
            run_id,
            lambda s: s.model_copy(
                update={
                    "errors": s.errors + (entry,),
                    "progress": s.progress.model_copy(
                        update={
                            "processed_records": settled,
                            "percentage": compute_percentage(settled, total_records),
                        }
                    ),
                }
            ),
        )
        logger.warning("Table %s failed: %s", error.table, error.reason)
        await self._events.log(
            project_id,
            Severity.ERROR,
            f"Table {error.table} failed",
            {"table": error.table, "error": error.reason},
        )

    async def _finish(
        self,
        project_id: str,
        run_id: str,
        all_failed: bool,
        started: float,
    ) -> None:
        elapsed = self._clock() - started

        def finalize(s: MigrationStatus) -> MigrationStatus:
            progress = s.progress.model_copy(
                update={
                    "percentage": 100,
                    "current_table": None,
                    "elapsed_seconds": elapsed,
                    "estimated_remaining_seconds": 0.0,
                }
            )
            state = MigrationState.ERROR if all_failed else MigrationState.COMPLETED
            return s.model_copy(update={"state": state, "progress": progress})

        final = await self._publish(project_id, run_id, finalize)

        project = await self._projects.get(project_id)
        project.state = ProjectState.BACKUP if all_failed else ProjectState.COMPLETED
        project.migration_status = final
        await self._projects.save(project)

        if all_failed:
            await self._events.log(
                project_id,
                Severity.ERROR,
                "Migration failed: every table failed",
                {"errors": len(final.errors)},
            )
        else:
            await self._events.log(
                project_id,
                Severity.INFO,
                "Migration completed",
                {
                    "tables": final.progress.completed_tables,
                    "records": final.progress.processed_records,
                    "errors": len(final.errors),
                    "elapsed_seconds": round(elapsed, 2),
                },
            )

    async def _abort(self, project_id: str, run_id: str, reason: str) -> None:
        final = await self._board.publish_if_running(
            project_id,
            lambda s: s.model_copy(update={"state": MigrationState.ERROR}),
            run_id,
        )
        if final is None:
            return
        project = await self._projects.get(project_id)
        project.state = ProjectState.BACKUP
        project.migration_status = final
        await self._projects.save(project)
        await self._events.log(
            project_id, Severity.ERROR, "Migration aborted", {"error": reason}
        )
