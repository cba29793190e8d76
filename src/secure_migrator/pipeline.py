"""Migration pipeline orchestrator.

``MigrationPipeline`` is the operation surface used by the CLI (or any other
front end).  It ties the steps of a project together and enforces the order
in which they may run:

    configure source -> extract schema -> analyze -> save obfuscation config
    -> create backup -> configure target -> start migration

Each step stores its result on the project and advances the project's state
the first time it runs.  Raw descriptors are validated with pydantic; invalid
input never mutates the project.

Usage:
    pipeline = MigrationPipeline(
        JsonFileProjectStore(Path("projects.json")),
        LoggingEventLog(),
        FileArtifactStore(Path("backups")),
    )

    await pipeline.configure_source(project_id, {"type": "postgresql", ...})
    snapshot = await pipeline.extract_schema(project_id)
    summary = await pipeline.run_analysis(project_id)
"""

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from secure_migrator.adapters.base import SourceAdapter, TargetClient
from secure_migrator.analysis.classifier import classify, summarize
from secure_migrator.analysis.models import AnalysisSummary
from secure_migrator.backup.models import BackupDescriptor
from secure_migrator.backup.store import ArtifactStore
from secure_migrator.backup.vault import BackupVault
from secure_migrator.config.loader import first_error_field
from secure_migrator.config.models import Settings, SourceConnection, TargetConnection
from secure_migrator.errors import ConfigValidationError, StateError
from secure_migrator.factory import (
    check_source_connection,
    check_target_connection,
    get_source_adapter,
    get_target_client,
)
from secure_migrator.migration.executor import MigrationExecutor
from secure_migrator.migration.status import MigrationStatus, MigrationStatusBoard
from secure_migrator.obfuscation.models import (
    ObfuscationConfig,
    validate_obfuscation_config,
)
from secure_migrator.project.events import EventLog, Severity
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import ProjectStore
from secure_migrator.schema.introspector import extract
from secure_migrator.schema.models import SchemaSnapshot

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def parse_descriptor(model: type[M], raw: Any, what: str) -> M:
    """Validate a raw descriptor into ``model``.

    Raises:
        ConfigValidationError: Naming the first offending field.
    """
    if isinstance(raw, model):
        return raw
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        field = first_error_field(e)
        message = e.errors()[0]["msg"] if e.errors() else str(e)
        raise ConfigValidationError(f"Invalid {what}: {field}: {message}", field=field)


def prune_config(config: ObfuscationConfig, snapshot: SchemaSnapshot) -> ObfuscationConfig:
    """Drop rules whose table or column is absent from ``snapshot``."""
    pruned: ObfuscationConfig = {}
    for table, rules in config.items():
        kept = {c: r for c, r in rules.items() if snapshot.has_column(table, c)}
        if kept:
            pruned[table] = kept
    return pruned


class MigrationPipeline:
    """Every operation of the migration workflow, keyed by project id.

    Args:
        project_store: Project persistence.
        event_log: Sink for operator-facing events.
        artifact_store: Where backup ciphertexts are kept.
        settings: Global settings (table limit, default batch size, ...).
        source_factory: Builds source adapters (injectable for tests).
        target_factory: Builds target clients (injectable for tests).
        board: Live migration status board.
    """

    def __init__(
        self,
        project_store: ProjectStore,
        event_log: EventLog,
        artifact_store: ArtifactStore,
        settings: Settings | None = None,
        source_factory: Callable[[SourceConnection], SourceAdapter] = get_source_adapter,
        target_factory: Callable[[TargetConnection], TargetClient] = get_target_client,
        board: MigrationStatusBoard | None = None,
    ) -> None:
        self._projects = project_store
        self._events = event_log
        self._settings = settings or Settings()
        self._source_factory = source_factory
        self._target_factory = target_factory
        self.vault = BackupVault(project_store, artifact_store, event_log)
        self.executor = MigrationExecutor(
            project_store,
            event_log,
            board=board,
            source_factory=source_factory,
            target_factory=target_factory,
        )

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def test_source_connection(self, raw_connection: Any) -> bool:
        """Check that a source descriptor connects (``SELECT 1``)."""
        connection = parse_descriptor(SourceConnection, raw_connection, "source connection")
        ok = await check_source_connection(connection, self._source_factory)
        logger.info("Connection test to %s succeeded", connection.display_url())
        return ok

    async def configure_source(self, project_id: str, raw_connection: Any) -> SourceConnection:
        """Test a source descriptor and store it on the project.

        ``timeout_seconds`` and ``max_sample_rows`` default to the global
        settings when not given.
        """
        if isinstance(raw_connection, dict):
            raw_connection = {
                "timeout_seconds": self._settings.connection_timeout,
                "max_sample_rows": self._settings.max_sample_rows,
                **raw_connection,
            }
        connection = parse_descriptor(SourceConnection, raw_connection, "source connection")
        project = await self._projects.get(project_id)
        self._reject_during_migration(project, "change the source connection")

        await check_source_connection(connection, self._source_factory)

        project.source_connection = connection
        await self._projects.save(project)
        await self._events.log(
            project_id,
            Severity.INFO,
            "Source connection configured",
            {"source": connection.display_url()},
        )
        return connection

    async def configure_target(self, project_id: str, raw_connection: Any) -> TargetConnection:
        """Ping a target descriptor and store it on the project.

        ``batch_size`` and ``timeout_seconds`` default to the global settings
        when not given.
        """
        if isinstance(raw_connection, dict):
            raw_connection = {
                "batch_size": self._settings.batch_size,
                "timeout_seconds": self._settings.connection_timeout,
                **raw_connection,
            }
        target = parse_descriptor(TargetConnection, raw_connection, "target connection")
        project = await self._projects.get(project_id)
        self._reject_during_migration(project, "change the target connection")

        await check_target_connection(target, self._target_factory)

        project.target_connection = target
        await self._projects.save(project)
        await self._events.log(
            project_id,
            Severity.INFO,
            "Target connection configured",
            {"database": target.database_name, "batch_size": target.batch_size},
        )
        return target

    # ------------------------------------------------------------------
    # Schema and analysis
    # ------------------------------------------------------------------

    async def extract_schema(self, project_id: str) -> SchemaSnapshot:
        """Extract the source schema and store it on the project.

        A stored obfuscation config keeps only the rules that still match
        the new schema.

        Raises:
            StateError: No source connection, or a migration is running.
            DatabaseConnectionError: The source could not be read.
        """
        project = await self._projects.get(project_id)
        self._reject_during_migration(project, "re-extract the schema")
        if project.source_connection is None:
            raise StateError("Cannot extract schema: configure a source connection first")

        snapshot = await extract(
            project.source_connection,
            table_limit=self._settings.table_limit,
            adapter_factory=self._source_factory,
        )

        project.snapshot = snapshot
        if project.obfuscation_config:
            pruned = prune_config(project.obfuscation_config, snapshot)
            if pruned != project.obfuscation_config:
                logger.warning("Dropped obfuscation rules for columns no longer in the schema")
            project.obfuscation_config = pruned
        project.advance(ProjectState.CREATED, ProjectState.EXTRACTION)
        await self._projects.save(project)

        await self._events.log(
            project_id,
            Severity.INFO,
            "Schema extracted",
            {"tables": len(snapshot.tables), "relations": len(snapshot.relations)},
        )
        return snapshot

    async def get_schema(self, project_id: str) -> SchemaSnapshot:
        project = await self._projects.get(project_id)
        return self._require_snapshot(project, "read the schema")

    async def run_analysis(self, project_id: str) -> AnalysisSummary:
        """Classify the stored schema; advances ``extraction -> analysis``."""
        project = await self._projects.get(project_id)
        snapshot = self._require_snapshot(project, "run the analysis")

        summary = summarize(classify(snapshot))

        if project.advance(ProjectState.EXTRACTION, ProjectState.ANALYSIS):
            await self._projects.save(project)
        await self._events.log(
            project_id,
            Severity.INFO,
            "Sensitivity analysis completed",
            {
                "critical": summary.critical_count,
                "moderate": summary.moderate_count,
                "low": summary.low_count,
                "safe": summary.safe_count,
            },
        )
        return summary

    async def get_analysis(self, project_id: str) -> AnalysisSummary:
        """Recompute the analysis of the stored schema without side effects."""
        project = await self._projects.get(project_id)
        snapshot = self._require_snapshot(project, "read the analysis")
        return summarize(classify(snapshot))

    # ------------------------------------------------------------------
    # Obfuscation
    # ------------------------------------------------------------------

    async def get_obfuscation_config(self, project_id: str) -> ObfuscationConfig:
        project = await self._projects.get(project_id)
        return project.obfuscation_config or {}

    async def save_obfuscation_config(self, project_id: str, raw_config: Any) -> ObfuscationConfig:
        """Validate and store an obfuscation config (all or nothing).

        Raises:
            StateError: No schema yet, or a migration is running.
            ConfigValidationError: The config names an unknown table or
                column, or an invalid method.  Nothing is stored.
        """
        project = await self._projects.get(project_id)
        snapshot = self._require_snapshot(project, "save an obfuscation config")
        self._reject_during_migration(project, "change the obfuscation config")

        config = validate_obfuscation_config(raw_config, snapshot)

        project.obfuscation_config = config
        project.advance(ProjectState.ANALYSIS, ProjectState.OBFUSCATION)
        await self._projects.save(project)

        await self._events.log(
            project_id,
            Severity.INFO,
            "Obfuscation config saved",
            {
                "tables": len(config),
                "columns": sum(len(rules) for rules in config.values()),
            },
        )
        return config

    # ------------------------------------------------------------------
    # Backups
    # ------------------------------------------------------------------

    async def create_backup(self, project_id: str, password: str) -> BackupDescriptor:
        return await self.vault.create(project_id, password)

    async def list_backups(self, project_id: str) -> list[BackupDescriptor]:
        return await self.vault.list(project_id)

    async def download_backup(self, project_id: str, backup_id: str) -> bytes:
        return await self.vault.download(project_id, backup_id)

    async def delete_backup(self, project_id: str, backup_id: str) -> None:
        project = await self._projects.get(project_id)
        self._reject_during_migration(project, "delete a backup")
        await self.vault.delete(project_id, backup_id)

    # ------------------------------------------------------------------
    # Migration
    # ------------------------------------------------------------------

    async def start_migration(self, project_id: str) -> MigrationStatus:
        return await self.executor.start(project_id)

    async def cancel_migration(self, project_id: str) -> MigrationStatus:
        return await self.executor.cancel(project_id)

    async def get_migration_status(self, project_id: str) -> MigrationStatus:
        """Live status, else the last persisted one, else ``pending``."""
        status = self.executor.status(project_id)
        if status is not None:
            return status
        project = await self._projects.get(project_id)
        return project.migration_status or MigrationStatus()

    async def wait_for_migration(self, project_id: str) -> MigrationStatus:
        await self.executor.wait(project_id)
        return await self.get_migration_status(project_id)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _reject_during_migration(self, project: Project, action: str) -> None:
        if project.state == ProjectState.MIGRATION or self.executor.is_running(project.id):
            raise StateError(f"Cannot {action} while a migration is in progress")

    @staticmethod
    def _require_snapshot(project: Project, action: str) -> SchemaSnapshot:
        if project.snapshot is None:
            raise StateError(f"Cannot {action}: the schema has not been extracted yet")
        return project.snapshot
