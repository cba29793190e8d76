"""Microsoft SQL Server source adapter.

Uses SQLAlchemy's async engine with the ``aioodbc`` driver (``sqlserver``
extra) and the Microsoft ODBC driver.  Foreign keys are read from the
``sys`` catalog views because ``INFORMATION_SCHEMA`` does not expose the
referenced column directly.
"""

from typing import Any

from sqlalchemy import URL

from secure_migrator.adapters.sql import SqlSourceAdapter
from secure_migrator.config.models import SourceConnection

ODBC_DRIVER = "ODBC Driver 18 for SQL Server"


class SqlServerSourceAdapter(SqlSourceAdapter):
    """SQL Server implementation of the ``SourceAdapter`` protocol."""

    engine_name = "sqlserver"
    drivername = "mssql+aioodbc"
    default_schema = "dbo"

    type_map = {
        "nvarchar": "varchar",
        "nchar": "char",
        "ntext": "text",
        "datetime2": "timestamp",
        "datetimeoffset": "timestamptz",
        "bit": "bool",
    }

    TABLES_SQL = """
        SELECT TABLE_NAME AS table_name
        FROM INFORMATION_SCHEMA.TABLES
        WHERE TABLE_SCHEMA = :schema
          AND TABLE_TYPE = 'BASE TABLE'
        ORDER BY TABLE_NAME
    """

    COLUMNS_SQL = """
        SELECT
            c.COLUMN_NAME AS column_name,
            c.DATA_TYPE AS data_type,
            c.IS_NULLABLE AS is_nullable,
            c.CHARACTER_MAXIMUM_LENGTH AS max_length,
            CASE WHEN pk.COLUMN_NAME IS NULL THEN 0 ELSE 1 END AS key_flag
        FROM INFORMATION_SCHEMA.COLUMNS c
        LEFT JOIN (
            SELECT kcu.TABLE_SCHEMA, kcu.TABLE_NAME, kcu.COLUMN_NAME
            FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS tc
            JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu
                ON tc.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME
                AND tc.TABLE_SCHEMA = kcu.TABLE_SCHEMA
            WHERE tc.CONSTRAINT_TYPE = 'PRIMARY KEY'
        ) pk
            ON pk.TABLE_SCHEMA = c.TABLE_SCHEMA
            AND pk.TABLE_NAME = c.TABLE_NAME
            AND pk.COLUMN_NAME = c.COLUMN_NAME
        WHERE c.TABLE_SCHEMA = :schema
          AND c.TABLE_NAME = :table
        ORDER BY c.ORDINAL_POSITION
    """

    FOREIGN_KEYS_SQL = """
        SELECT
            tp.name AS source_table,
            cp.name AS source_column,
            tr.name AS target_table,
            cr.name AS target_column
        FROM sys.foreign_key_columns fkc
        JOIN sys.tables tp ON fkc.parent_object_id = tp.object_id
        JOIN sys.columns cp
            ON fkc.parent_object_id = cp.object_id
            AND fkc.parent_column_id = cp.column_id
        JOIN sys.tables tr ON fkc.referenced_object_id = tr.object_id
        JOIN sys.columns cr
            ON fkc.referenced_object_id = cr.object_id
            AND fkc.referenced_column_id = cr.column_id
        JOIN sys.schemas s ON tp.schema_id = s.schema_id
        WHERE s.name = :schema
        ORDER BY tp.name, fkc.constraint_object_id, fkc.constraint_column_id
    """

    def build_url(self, connection: SourceConnection) -> URL:
        return URL.create(
            drivername=self.drivername,
            username=connection.user,
            password=connection.password.get_secret_value(),
            host=connection.host,
            port=connection.port,
            database=connection.database,
            query={
                "driver": ODBC_DRIVER,
                "Encrypt": "yes" if connection.ssl else "no",
                "TrustServerCertificate": "yes",
            },
        )

    def connect_args(self, connection: SourceConnection) -> dict[str, Any]:
        return {"timeout": int(connection.timeout_seconds)}

    def quote(self, identifier: str) -> str:
        return "[" + identifier.replace("]", "]]") + "]"

    def sample_sql(self, table: str, max_rows: int) -> str:
        return f"SELECT TOP {int(max_rows)} * FROM {self.qualified(table)}"

    def batch_sql(self, table: str, order_by: list[str]) -> str:
        order_clause = ", ".join(self.quote(c) for c in order_by) or "(SELECT NULL)"
        return (
            f"SELECT * FROM {self.qualified(table)} "
            f"ORDER BY {order_clause} "
            f"OFFSET :offset ROWS FETCH NEXT :limit ROWS ONLY"
        )
