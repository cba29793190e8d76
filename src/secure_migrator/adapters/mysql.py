"""MySQL / MariaDB source adapter.

Uses SQLAlchemy's async engine with the ``aiomysql`` driver (``mysql``
extra).  In MySQL a schema is a database, so the catalog is filtered by the
connection's database name unless ``schema_name`` overrides it.
"""

import ssl
from typing import Any

from secure_migrator.adapters.sql import SqlSourceAdapter
from secure_migrator.config.models import SourceConnection


class MySQLSourceAdapter(SqlSourceAdapter):
    """MySQL implementation of the ``SourceAdapter`` protocol."""

    engine_name = "mysql"
    drivername = "mysql+aiomysql"

    type_map = {
        "integer": "int",
        "tinyint": "tinyint",
        "double precision": "double",
    }

    TABLES_SQL = """
        SELECT TABLE_NAME AS table_name
        FROM information_schema.TABLES
        WHERE TABLE_SCHEMA = :schema
          AND TABLE_TYPE = 'BASE TABLE'
        ORDER BY TABLE_NAME
    """

    COLUMNS_SQL = """
        SELECT
            COLUMN_NAME AS column_name,
            DATA_TYPE AS data_type,
            IS_NULLABLE AS is_nullable,
            CHARACTER_MAXIMUM_LENGTH AS max_length,
            COLUMN_KEY AS key_flag
        FROM information_schema.COLUMNS
        WHERE TABLE_SCHEMA = :schema
          AND TABLE_NAME = :table
        ORDER BY ORDINAL_POSITION
    """

    FOREIGN_KEYS_SQL = """
        SELECT
            TABLE_NAME AS source_table,
            COLUMN_NAME AS source_column,
            REFERENCED_TABLE_NAME AS target_table,
            REFERENCED_COLUMN_NAME AS target_column
        FROM information_schema.KEY_COLUMN_USAGE
        WHERE TABLE_SCHEMA = :schema
          AND REFERENCED_TABLE_NAME IS NOT NULL
        ORDER BY TABLE_NAME, CONSTRAINT_NAME, ORDINAL_POSITION
    """

    def connect_args(self, connection: SourceConnection) -> dict[str, Any]:
        args: dict[str, Any] = {"connect_timeout": int(connection.timeout_seconds)}
        if connection.ssl:
            args["ssl"] = ssl.create_default_context()
        return args

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    def is_primary_key(self, key_flag: Any) -> bool:
        # COLUMN_KEY is 'PRI', 'UNI', 'MUL' or ''
        return key_flag == "PRI"

    def sample_sql(self, table: str, max_rows: int) -> str:
        return f"SELECT * FROM {self.qualified(table)} LIMIT {int(max_rows)}"

    def batch_sql(self, table: str, order_by: list[str]) -> str:
        order_clause = ", ".join(self.quote(c) for c in order_by) or "1"
        return (
            f"SELECT * FROM {self.qualified(table)} "
            f"ORDER BY {order_clause} LIMIT :limit OFFSET :offset"
        )
