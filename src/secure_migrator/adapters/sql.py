"""Shared SQLAlchemy plumbing for source engine adapters.

``SqlSourceAdapter`` owns the async engine, row serialization and the
normalization of catalog rows into ``ColumnDescriptor``.  Engine adapters
subclass it and provide their own catalog SQL, identifier quoting and
pagination syntax -- adding an engine means adding one subclass.

Catalog queries must return rows with the columns:

- tables: ``table_name``
- columns: ``column_name``, ``data_type``, ``is_nullable``, ``max_length``,
  ``key_flag``
- foreign keys: ``source_table``, ``source_column``, ``target_table``,
  ``target_column``
"""

import base64
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID

from sqlalchemy import URL, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from secure_migrator.config.models import SourceConnection
from secure_migrator.schema.models import ColumnDescriptor, RelationEdge


def create_async_engine_pooled(database_url: str | URL, **kwargs: Any) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Default pool settings:

    - ``pool_size=2``: introspection and transfer are sequential per project.
    - ``max_overflow=2``: small burst allowance.
    - ``pool_pre_ping=True``: Validate connections before checkout.
    - ``pool_recycle=300``: Recycle connections every 5 minutes.

    Args:
        database_url: SQLAlchemy URL with an async driver scheme.
        **kwargs: Additional keyword arguments forwarded to
            ``create_async_engine``.

    Returns:
        Configured ``AsyncEngine``.
    """
    # One adapter per run; catalog reads and batch reads never overlap
    defaults: dict[str, Any] = {
        "pool_size": 2,
        "max_overflow": 2,
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "echo": False,
    }
    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}

    return create_async_engine(database_url, **merged)


class SqlSourceAdapter:
    """Base class for SQLAlchemy-backed ``SourceAdapter`` implementations.

    Subclasses set the class attributes and implement the SQL builders.

    Args:
        connection: Source connection descriptor.
        **engine_kwargs: Forwarded to ``create_async_engine_pooled``.
    """

    engine_name: ClassVar[str] = ""
    drivername: ClassVar[str] = ""
    default_schema: ClassVar[str | None] = None
    type_map: ClassVar[dict[str, str]] = {}

    TABLES_SQL: ClassVar[str] = ""
    COLUMNS_SQL: ClassVar[str] = ""
    FOREIGN_KEYS_SQL: ClassVar[str] = ""

    def __init__(self, connection: SourceConnection, **engine_kwargs: Any) -> None:
        self._connection = connection
        self._schema_name: str = connection.schema_name or self._fallback_schema()
        engine_kwargs.setdefault("connect_args", self.connect_args(connection))
        self._engine: AsyncEngine = create_async_engine_pooled(
            self.build_url(connection), **engine_kwargs
        )

    def _fallback_schema(self) -> str:
        return self.default_schema or self._connection.database

    # ------------------------------------------------------------------
    # Engine-specific hooks
    # ------------------------------------------------------------------

    def build_url(self, connection: SourceConnection) -> URL:
        """Build the SQLAlchemy URL for this engine's async driver."""
        return URL.create(
            drivername=self.drivername,
            username=connection.user,
            password=connection.password.get_secret_value(),
            host=connection.host,
            port=connection.port,
            database=connection.database,
        )

    def connect_args(self, connection: SourceConnection) -> dict[str, Any]:
        """Driver keyword arguments (timeouts, TLS)."""
        return {}

    def quote(self, identifier: str) -> str:
        """Quote an identifier using ANSI double quotes."""
        return '"' + identifier.replace('"', '""') + '"'

    def qualified(self, table: str) -> str:
        """Schema-qualified, quoted table name."""
        return f"{self.quote(self._schema_name)}.{self.quote(table)}"

    def sample_sql(self, table: str, max_rows: int) -> str:
        raise NotImplementedError

    def batch_sql(self, table: str, order_by: list[str]) -> str:
        """SELECT statement with ``:offset`` and ``:limit`` parameters."""
        raise NotImplementedError

    def is_primary_key(self, key_flag: Any) -> bool:
        """Interpret the engine's raw primary-key marker."""
        return bool(key_flag)

    def normalize_max_length(self, raw: Any) -> int | None:
        """Map the catalog's character length to ``max_length``."""
        if raw is None:
            return None
        length = int(raw)
        return length if length > 0 else None

    def normalize_data_type(self, data_type: str) -> str:
        """Normalize verbose catalog type names to short standard names."""
        lowered = data_type.lower()
        return self.type_map.get(lowered, lowered)

    def catalog_params(self) -> dict[str, Any]:
        """Bind parameters shared by the catalog queries."""
        return {"schema": self._schema_name}

    # ------------------------------------------------------------------
    # SourceAdapter capability set
    # ------------------------------------------------------------------

    async def list_tables(self) -> list[str]:
        rows = await self._fetch_all(self.TABLES_SQL, self.catalog_params())
        return [row["table_name"] for row in rows]

    async def describe_columns(self, table: str) -> list[ColumnDescriptor]:
        params = {**self.catalog_params(), "table": table}
        rows = await self._fetch_all(self.COLUMNS_SQL, params)
        return [self._to_column(row) for row in rows]

    async def sample_rows(self, table: str, max_rows: int) -> list[dict[str, Any]]:
        return await self._fetch_all(self.sample_sql(table, max_rows))

    async def list_foreign_keys(self) -> list[RelationEdge]:
        rows = await self._fetch_all(self.FOREIGN_KEYS_SQL, self.catalog_params())
        return [RelationEdge(**row) for row in rows]

    async def count_rows(self, table: str) -> int:
        rows = await self._fetch_all(
            f"SELECT COUNT(*) AS cnt FROM {self.qualified(table)}"
        )
        return int(rows[0]["cnt"]) if rows else 0

    async def fetch_batch(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        sql = self.batch_sql(table, order_by or [])
        return await self._fetch_all(sql, {"offset": offset, "limit": limit})

    async def test_connection(self) -> bool:
        """Test database connection health.

        Returns:
            ``True`` if ``SELECT 1`` succeeds.

        Raises:
            Exception: If the database connection fails.
        """
        async with self._engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar() == 1

    async def close(self) -> None:
        """Close the async engine and dispose of the connection pool."""
        if self._engine:
            await self._engine.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _fetch_all(
        self, sql: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        async with self._engine.connect() as conn:
            result = await conn.execute(text(sql), params or {})
            col_names = list(result.keys())
            rows = result.fetchall()
            return [self._serialize_row(dict(zip(col_names, row))) for row in rows]

    def _to_column(self, row: dict[str, Any]) -> ColumnDescriptor:
        return ColumnDescriptor(
            name=row["column_name"],
            data_type=self.normalize_data_type(row["data_type"]),
            nullable=str(row["is_nullable"]).upper() in ("YES", "1", "TRUE"),
            is_primary_key=self.is_primary_key(row["key_flag"]),
            max_length=self.normalize_max_length(row["max_length"]),
        )

    def _serialize_value(self, value: Any) -> Any:
        """Serialize driver values to JSON-compatible types.

        UUID and Decimal become strings (Decimal keeps full precision),
        temporal values become ISO strings, binary becomes base64.
        """
        if isinstance(value, (UUID, Decimal)):
            return str(value)
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, (bytes, bytearray, memoryview)):
            return base64.b64encode(bytes(value)).decode("ascii")
        return value

    def _serialize_row(self, row: dict) -> dict:
        """Serialize all values in a row dict."""
        return {k: self._serialize_value(v) for k, v in row.items()}
