"""secure-migrator: relational to document-store migration with obfuscation.

Extracts a source database schema, scores every column for sensitive data,
applies operator-chosen obfuscation rules, keeps an encrypted backup of the
obfuscated snapshot, and copies the data to MongoDB in cancellable batches.

Usage:
    from secure_migrator import MigrationPipeline, InMemoryProjectStore
    from secure_migrator import LoggingEventLog, FileArtifactStore
    from secure_migrator import classify, apply, ObfuscationMethod
"""

__version__ = "0.1.0"

# Errors
from secure_migrator.errors import (
    BackupNotFoundError,
    ConfigValidationError,
    DatabaseConnectionError,
    MigratorError,
    ProjectNotFoundError,
    StateError,
    TransientMigrationError,
)

# Adapters
from secure_migrator.adapters.base import SourceAdapter, TargetClient

# Config
from secure_migrator.config.loader import load_config
from secure_migrator.config.models import Settings, SourceConnection, TargetConnection

# Schema
from secure_migrator.schema.introspector import extract
from secure_migrator.schema.models import SchemaSnapshot

# Analysis
from secure_migrator.analysis.classifier import classify, summarize
from secure_migrator.analysis.models import SensitiveFieldReport

# Obfuscation
from secure_migrator.obfuscation.engine import apply
from secure_migrator.obfuscation.models import ObfuscationMethod, validate_obfuscation_config

# Project, backups, migration
from secure_migrator.backup.store import FileArtifactStore
from secure_migrator.backup.vault import BackupVault
from secure_migrator.migration.executor import MigrationExecutor
from secure_migrator.migration.status import MigrationStatus, MigrationStatusBoard
from secure_migrator.pipeline import MigrationPipeline
from secure_migrator.project.events import EventLog, LoggingEventLog
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import (
    InMemoryProjectStore,
    JsonFileProjectStore,
    ProjectStore,
)

__all__ = [
    # Errors
    "MigratorError",
    "DatabaseConnectionError",
    "ConfigValidationError",
    "StateError",
    "TransientMigrationError",
    "ProjectNotFoundError",
    "BackupNotFoundError",
    # Adapters
    "SourceAdapter",
    "TargetClient",
    # Config
    "load_config",
    "Settings",
    "SourceConnection",
    "TargetConnection",
    # Schema
    "extract",
    "SchemaSnapshot",
    # Analysis
    "classify",
    "summarize",
    "SensitiveFieldReport",
    # Obfuscation
    "apply",
    "ObfuscationMethod",
    "validate_obfuscation_config",
    # Project, backups, migration
    "FileArtifactStore",
    "BackupVault",
    "MigrationExecutor",
    "MigrationStatus",
    "MigrationStatusBoard",
    "MigrationPipeline",
    "EventLog",
    "LoggingEventLog",
    "Project",
    "ProjectState",
    "ProjectStore",
    "InMemoryProjectStore",
    "JsonFileProjectStore",
]
