"""Schema introspection across source engines.

Drives a ``SourceAdapter`` to build a normalized ``SchemaSnapshot``:

- Tables in enumeration order, bounded by ``table_limit``
- Columns with nullability, primary-key flags and max length
- Up to ``max_sample_rows`` sampled rows per table
- Foreign-key edges whose endpoints were both scanned

Every adapter call is bounded by the connection's ``timeout_seconds``.
Driver failures surface as ``DatabaseConnectionError`` with the driver
message kept verbatim; nothing is retried.

Usage:
    snapshot = await extract(connection, table_limit=100)

    # Or with an adapter you already hold
    async with SchemaIntrospector(adapter, timeout_seconds=30) as introspector:
        snapshot = await introspector.introspect(table_limit=20, max_rows=5)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from secure_migrator.adapters.base import SourceAdapter
from secure_migrator.config.models import SourceConnection
from secure_migrator.errors import DatabaseConnectionError, MigratorError
from secure_migrator.factory import get_source_adapter
from secure_migrator.schema.models import SchemaSnapshot, TableDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TABLE_LIMIT = 100
DEFAULT_MAX_ROWS = 10

T = TypeVar("T")


class SchemaIntrospector:
    """Builds a ``SchemaSnapshot`` from any ``SourceAdapter``.

    The adapter is closed on context exit.

    Args:
        adapter: Engine adapter to read the catalog through.
        timeout_seconds: Upper bound for each adapter call.
    """

    def __init__(self, adapter: SourceAdapter, timeout_seconds: float = 30) -> None:
        self._adapter = adapter
        self._timeout = timeout_seconds

    async def __aenter__(self) -> "SchemaIntrospector":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self._adapter.close()

    async def introspect(
        self,
        table_limit: int = DEFAULT_TABLE_LIMIT,
        max_rows: int = DEFAULT_MAX_ROWS,
    ) -> SchemaSnapshot:
        """Introspect tables, columns, samples and relations.

        Args:
            table_limit: Maximum number of tables to scan.
            max_rows: Maximum number of sampled rows per table.

        Returns:
            A validated ``SchemaSnapshot``.

        Raises:
            DatabaseConnectionError: On any driver error or timeout.
        """
        table_names = await self._call(self._adapter.list_tables())
        scanned = table_names[:table_limit]
        if len(table_names) > table_limit:
            logger.info(
                "Table limit reached: scanning %d of %d tables",
                table_limit,
                len(table_names),
            )

        tables: dict[str, TableDescriptor] = {}
        for table_name in scanned:
            columns = await self._call(self._adapter.describe_columns(table_name))
            sample = await self._call(self._adapter.sample_rows(table_name, max_rows))
            tables[table_name] = TableDescriptor(
                columns=columns,
                sample_rows=sample[:max_rows],
            )

        edges = await self._call(self._adapter.list_foreign_keys())

        # Keep only edges whose endpoints were both scanned
        snapshot = SchemaSnapshot(tables=tables)
        relations = [
            edge
            for edge in edges
            if snapshot.has_column(edge.source_table, edge.source_column)
            and snapshot.has_column(edge.target_table, edge.target_column)
        ]

        return SchemaSnapshot(tables=tables, relations=relations)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except TimeoutError:
            raise DatabaseConnectionError(
                f"Source database did not answer within {self._timeout}s"
            )
        except MigratorError:
            raise
        except Exception as e:
            raise DatabaseConnectionError(f"Failed to read source schema: {e}")


async def extract(
    connection: SourceConnection,
    table_limit: int = DEFAULT_TABLE_LIMIT,
    adapter_factory: Callable[[SourceConnection], SourceAdapter] = get_source_adapter,
) -> SchemaSnapshot:
    """Connect to a source database and extract its ``SchemaSnapshot``.

    Args:
        connection: Source connection descriptor (its ``max_sample_rows``
            bounds the per-table sample).
        table_limit: Maximum number of tables to scan.
        adapter_factory: Callable building the engine adapter.

    Returns:
        The normalized snapshot.

    Raises:
        DatabaseConnectionError: Unreachable host, bad credentials,
            unsupported engine, or timeout.
    """
    adapter = adapter_factory(connection)
    async with SchemaIntrospector(adapter, connection.timeout_seconds) as introspector:
        snapshot = await introspector.introspect(
            table_limit=table_limit,
            max_rows=connection.max_sample_rows,
        )

    logger.info(
        "Extracted %d tables and %d relations from %s",
        len(snapshot.tables),
        len(snapshot.relations),
        connection.display_url(),
    )
    return snapshot
