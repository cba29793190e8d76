"""PostgreSQL source adapter.

Reads the catalog through ``information_schema`` using SQLAlchemy's async
engine with the ``asyncpg`` driver.

Usage:
    from secure_migrator.adapters.postgres import PostgresSourceAdapter

    adapter = PostgresSourceAdapter(connection)
    tables = await adapter.list_tables()
    await adapter.close()
"""

from typing import Any

from secure_migrator.adapters.sql import SqlSourceAdapter
from secure_migrator.config.models import SourceConnection


class PostgresSourceAdapter(SqlSourceAdapter):
    """PostgreSQL implementation of the ``SourceAdapter`` protocol.

    Scans the ``public`` schema unless the connection names another one.
    """

    engine_name = "postgresql"
    drivername = "postgresql+asyncpg"
    default_schema = "public"

    # Tables to exclude from introspection (extension/system tables)
    EXCLUDED_TABLES = {
        "schema_migrations",
        "pg_stat_statements",
        "spatial_ref_sys",
    }

    type_map = {
        "character varying": "varchar",
        "character": "char",
        "timestamp with time zone": "timestamptz",
        "timestamp without time zone": "timestamp",
        "integer": "int",
        "boolean": "bool",
        "double precision": "double",
    }

    TABLES_SQL = """
        SELECT table_name
        FROM information_schema.tables
        WHERE table_schema = :schema
          AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """

    COLUMNS_SQL = """
        SELECT
            c.column_name,
            c.data_type,
            c.is_nullable,
            c.character_maximum_length AS max_length,
            EXISTS (
                SELECT 1
                FROM information_schema.table_constraints tc
                JOIN information_schema.key_column_usage kcu
                    ON tc.constraint_name = kcu.constraint_name
                    AND tc.table_schema = kcu.table_schema
                WHERE tc.constraint_type = 'PRIMARY KEY'
                  AND tc.table_schema = c.table_schema
                  AND tc.table_name = c.table_name
                  AND kcu.column_name = c.column_name
            ) AS key_flag
        FROM information_schema.columns c
        WHERE c.table_schema = :schema
          AND c.table_name = :table
        ORDER BY c.ordinal_position
    """

    FOREIGN_KEYS_SQL = """
        SELECT
            kcu.table_name AS source_table,
            kcu.column_name AS source_column,
            ref.table_name AS target_table,
            ref.column_name AS target_column
        FROM information_schema.referential_constraints rc
        JOIN information_schema.key_column_usage kcu
            ON kcu.constraint_name = rc.constraint_name
            AND kcu.constraint_schema = rc.constraint_schema
        JOIN information_schema.key_column_usage ref
            ON ref.constraint_name = rc.unique_constraint_name
            AND ref.constraint_schema = rc.unique_constraint_schema
            AND ref.ordinal_position = kcu.position_in_unique_constraint
        WHERE rc.constraint_schema = :schema
        ORDER BY kcu.table_name, rc.constraint_name, kcu.ordinal_position
    """

    def connect_args(self, connection: SourceConnection) -> dict[str, Any]:
        args: dict[str, Any] = {"timeout": connection.timeout_seconds}
        if connection.ssl:
            args["ssl"] = "require"
        return args

    async def list_tables(self) -> list[str]:
        tables = await super().list_tables()
        return [t for t in tables if t not in self.EXCLUDED_TABLES]

    def sample_sql(self, table: str, max_rows: int) -> str:
        return f"SELECT * FROM {self.qualified(table)} LIMIT {int(max_rows)}"

    def batch_sql(self, table: str, order_by: list[str]) -> str:
        order_clause = ", ".join(self.quote(c) for c in order_by) or "1"
        return (
            f"SELECT * FROM {self.qualified(table)} "
            f"ORDER BY {order_clause} LIMIT :limit OFFSET :offset"
        )
