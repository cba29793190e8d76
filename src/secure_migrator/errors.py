"""Error taxonomy for the migration pipeline.

Every rejection raised by this package derives from ``MigratorError`` and
carries a human-readable ``reason`` suitable for returning to the caller
verbatim.  None of these errors are retried automatically -- a retry is an
operator-initiated re-invocation of the same operation.

Usage:
    from secure_migrator.errors import StateError

    try:
        await pipeline.start_migration(project_id)
    except StateError as e:
        print(e.reason)
"""


class MigratorError(Exception):
    """Base class for all pipeline errors."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DatabaseConnectionError(MigratorError):
    """Source or target unreachable, bad credentials, or unsupported engine.

    The underlying driver message is kept in ``reason`` unchanged.
    """

    pass


class ConfigValidationError(MigratorError):
    """Malformed descriptor, invalid obfuscation config, or weak password.

    Args:
        reason: Human-readable description of the problem.
        field: Dotted path of the offending field (e.g. ``"users.email"``).
    """

    def __init__(self, reason: str, field: str | None = None) -> None:
        super().__init__(reason)
        self.field = field


class StateError(MigratorError):
    """An operation was attempted before its prerequisite step."""

    pass


class TransientMigrationError(MigratorError):
    """A single table's transfer failed during a migration run.

    Recorded into the run's error list; never propagated to callers.
    """

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(reason)
        self.table = table


class ProjectNotFoundError(MigratorError):
    """Raised when a project id is not present in the project store."""

    pass


class BackupNotFoundError(MigratorError):
    """Raised when a backup id is not registered on the project."""

    pass
