"""Pydantic models for connection descriptors and global settings."""

from pydantic import BaseModel, Field, SecretStr


# ============================================================================
# Connection Descriptors
# ============================================================================


class SourceConnection(BaseModel):
    """Connection descriptor for a source relational database.

    ``type`` is intentionally a free string: unsupported engines are
    rejected by the adapter factory with ``DatabaseConnectionError`` rather
    than by model validation.

    Example:
        >>> conn = SourceConnection(
        ...     type="postgresql", host="db", port=5432,
        ...     database="crm", user="reader", password="s3cret",
        ... )
        >>> conn.max_sample_rows
        10
    """

    type: str = Field(min_length=1)
    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    database: str = Field(min_length=1)
    user: str = Field(min_length=1)
    password: SecretStr
    ssl: bool = False
    timeout_seconds: float = Field(default=30, gt=0)
    max_sample_rows: int = Field(default=10, ge=1)
    schema_name: str | None = None  # engine default when None

    def display_url(self) -> str:
        """Connection summary with the password left out (safe to log)."""
        return f"{self.type}://{self.user}@{self.host}:{self.port}/{self.database}"


class TargetConnection(BaseModel):
    """Connection descriptor for the target document store."""

    uri: str = Field(min_length=1)
    database_name: str = Field(min_length=1)
    batch_size: int = Field(default=1000, ge=1)
    timeout_seconds: float = Field(default=30, gt=0)
    collection_mapping: dict[str, str] = Field(default_factory=dict)

    def collection_for(self, table: str) -> str:
        """Collection name a table's documents are written to."""
        return self.collection_mapping.get(table, table)


# ============================================================================
# Settings
# ============================================================================


class StorageSettings(BaseModel):
    """Where the CLI keeps project records and backup artifacts."""

    projects_file: str = "projects.json"
    backups_dir: str = "backups"


class Settings(BaseModel):
    """Operator-configured global settings."""

    table_limit: int = Field(default=100, ge=1)
    batch_size: int = Field(default=1000, ge=10)
    connection_timeout: int = Field(default=30, ge=1)
    max_sample_rows: int = Field(default=10, ge=1)
    debug_mode: bool = False


class MigratorConfig(BaseModel):
    """Complete configuration loaded from migrator.toml."""

    settings: Settings = Field(default_factory=Settings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    sources: dict[str, SourceConnection] = Field(default_factory=dict)
    targets: dict[str, TargetConnection] = Field(default_factory=dict)
