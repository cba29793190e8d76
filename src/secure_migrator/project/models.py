"""Project record and its workflow state machine.

The project is the only shared mutable state of the pipeline.  Each step
stores its result on the project and advances ``state`` the first time it
runs:

    created -> extraction -> analysis -> obfuscation -> backup -> migration -> completed

A cancelled migration moves the project back to ``backup``.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from secure_migrator.backup.models import BackupDescriptor
from secure_migrator.config.models import SourceConnection, TargetConnection
from secure_migrator.migration.status import MigrationStatus
from secure_migrator.obfuscation.models import ColumnRule
from secure_migrator.schema.models import SchemaSnapshot


class ProjectState(StrEnum):
    CREATED = "created"
    EXTRACTION = "extraction"
    ANALYSIS = "analysis"
    OBFUSCATION = "obfuscation"
    BACKUP = "backup"
    MIGRATION = "migration"
    COMPLETED = "completed"


class Project(BaseModel):
    """Project record as seen by the pipeline.

    Identity and ownership fields beyond ``id`` and ``code`` belong to the
    surrounding project-management system and are not modelled here.
    """

    id: str
    code: str
    state: ProjectState = ProjectState.CREATED
    source_connection: SourceConnection | None = None
    target_connection: TargetConnection | None = None
    snapshot: SchemaSnapshot | None = None
    obfuscation_config: dict[str, dict[str, ColumnRule]] | None = None
    backups: list[BackupDescriptor] = Field(default_factory=list)
    migration_status: MigrationStatus | None = None

    @property
    def latest_backup(self) -> BackupDescriptor | None:
        """Most recently created backup, if any."""
        if not self.backups:
            return None
        return max(self.backups, key=lambda b: b.timestamp)

    def find_backup(self, backup_id: str) -> BackupDescriptor | None:
        for backup in self.backups:
            if backup.id == backup_id:
                return backup
        return None

    def advance(self, expected: ProjectState, new: ProjectState) -> bool:
        """Move to ``new`` only when the project is in ``expected``.

        Returns:
            ``True`` if the state changed.
        """
        if self.state != expected:
            return False
        self.state = new
        return True
