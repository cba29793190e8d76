"""Source and target client protocol definitions.

Defines ``SourceAdapter``, the capability set every source engine adapter
must implement, and ``TargetClient``, the document-store side used by the
migration executor.  All methods are ``async def`` -- the library is
async-first.

Usage:
    from secure_migrator.adapters.base import SourceAdapter

    async def dump_catalog(adapter: SourceAdapter) -> None:
        for table in await adapter.list_tables():
            columns = await adapter.describe_columns(table)
            rows = await adapter.sample_rows(table, 10)
        await adapter.close()
"""

from typing import Any, Protocol

from secure_migrator.schema.models import ColumnDescriptor, RelationEdge


class SourceAdapter(Protocol):
    """Read-only catalog and data access to a source relational database.

    One implementation per engine.  Each implementation speaks its engine's
    native catalog dialect but returns the normalized models from
    ``secure_migrator.schema.models``.
    """

    engine_name: str

    async def list_tables(self) -> list[str]:
        """List base table names in enumeration (alphabetical) order."""
        ...

    async def describe_columns(self, table: str) -> list[ColumnDescriptor]:
        """Describe a table's columns in ordinal order.

        Nullability, primary-key flags and varchar max length are mapped into
        the same ``ColumnDescriptor`` shape regardless of engine.
        """
        ...

    async def sample_rows(self, table: str, max_rows: int) -> list[dict[str, Any]]:
        """Return at most ``max_rows`` rows with JSON-compatible values."""
        ...

    async def list_foreign_keys(self) -> list[RelationEdge]:
        """List single-column foreign-key edges of the scanned schema."""
        ...

    async def count_rows(self, table: str) -> int:
        """Count the rows of a table."""
        ...

    async def fetch_batch(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Read one page of rows in a stable order.

        Args:
            table: Table name.
            offset: Number of rows to skip.
            limit: Maximum number of rows to return.
            order_by: Columns giving a stable order (usually the primary key).
                When empty, the first column is used.
        """
        ...

    async def test_connection(self) -> bool:
        """Run ``SELECT 1`` against the source."""
        ...

    async def close(self) -> None:
        """Dispose of the connection pool."""
        ...


class TargetClient(Protocol):
    """Write access to the target document store."""

    async def ping(self) -> None:
        """Verify the target is reachable.

        Raises:
            Exception: Driver error if the server cannot be reached.
        """
        ...

    async def prepare_collection(self, collection: str) -> None:
        """Empty a collection before a table is (re)transferred into it."""
        ...

    async def insert_many(self, collection: str, documents: list[dict]) -> int:
        """Insert documents and return how many were written."""
        ...

    async def close(self) -> None:
        """Close the client."""
        ...
