"""Migration status models and status board.

``MigrationExecutor`` lives in ``secure_migrator.migration.executor``.
"""

from secure_migrator.migration.status import (
    MigrationErrorEntry,
    MigrationProgress,
    MigrationState,
    MigrationStatus,
    MigrationStatusBoard,
)

__all__ = [
    "MigrationErrorEntry",
    "MigrationProgress",
    "MigrationState",
    "MigrationStatus",
    "MigrationStatusBoard",
]
