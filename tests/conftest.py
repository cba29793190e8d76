"""Shared fakes and fixtures.

No database or network is used: the source engine, the target document
store and the event sink are in-memory fakes implementing the same
protocols as the real adapters.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import pytest

from secure_migrator.backup.models import BackupDescriptor
from secure_migrator.config.models import SourceConnection, TargetConnection
from secure_migrator.project.models import Project, ProjectState
from secure_migrator.project.store import InMemoryProjectStore
from secure_migrator.schema.models import (
    ColumnDescriptor,
    RelationEdge,
    SchemaSnapshot,
    TableDescriptor,
)


# ============================================================================
# Fakes
# ============================================================================


class FakeSourceAdapter:
    """In-memory ``SourceAdapter``.

    Args:
        tables: ``name -> (columns, rows)``.
        relations: Foreign-key edges to report.
        fail_fetch: Tables whose ``fetch_batch`` raises.
        fail_count: Tables whose ``count_rows`` raises.
        delay: Seconds slept before each batch read.
    """

    engine_name = "fake"

    def __init__(
        self,
        tables: dict[str, tuple[list[ColumnDescriptor], list[dict[str, Any]]]],
        relations: list[RelationEdge] | None = None,
        fail_fetch: set[str] | None = None,
        fail_count: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.tables = tables
        self.relations = relations or []
        self.fail_fetch = fail_fetch or set()
        self.fail_count = fail_count or set()
        self.delay = delay
        self.closed = False
        self.fetch_calls: list[tuple[str, int, int, list[str] | None]] = []

    async def list_tables(self) -> list[str]:
        return list(self.tables)

    async def describe_columns(self, table: str) -> list[ColumnDescriptor]:
        return list(self.tables[table][0])

    async def sample_rows(self, table: str, max_rows: int) -> list[dict[str, Any]]:
        return [dict(r) for r in self.tables[table][1][:max_rows]]

    async def list_foreign_keys(self) -> list[RelationEdge]:
        return list(self.relations)

    async def count_rows(self, table: str) -> int:
        if table in self.fail_count:
            raise RuntimeError(f"permission denied for table {table}")
        return len(self.tables[table][1])

    async def fetch_batch(
        self,
        table: str,
        offset: int,
        limit: int,
        order_by: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        self.fetch_calls.append((table, offset, limit, order_by))
        if self.delay:
            await asyncio.sleep(self.delay)
        if table in self.fail_fetch:
            raise RuntimeError(f"relation {table} does not exist")
        return [dict(r) for r in self.tables[table][1][offset:offset + limit]]

    async def test_connection(self) -> bool:
        return True

    async def close(self) -> None:
        self.closed = True


class FakeTargetClient:
    """In-memory ``TargetClient`` keeping documents per collection."""

    def __init__(
        self,
        fail_insert: set[str] | None = None,
        delay: float = 0.0,
        ping_error: Exception | None = None,
    ) -> None:
        self.collections: dict[str, list[dict]] = {}
        self.fail_insert = fail_insert or set()
        self.delay = delay
        self.ping_error = ping_error
        self.prepared: list[str] = []
        self.closed = False

    async def ping(self) -> None:
        if self.ping_error is not None:
            raise self.ping_error

    async def prepare_collection(self, collection: str) -> None:
        self.prepared.append(collection)
        self.collections[collection] = []

    async def insert_many(self, collection: str, documents: list[dict]) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        if collection in self.fail_insert:
            raise RuntimeError(f"write to {collection} rejected")
        self.collections.setdefault(collection, []).extend(documents)
        return len(documents)

    async def close(self) -> None:
        self.closed = True


class RecordingEventLog:
    """``EventLog`` that keeps every event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, str, dict]] = []

    async def log(self, project_id, severity, message, details=None) -> None:
        self.events.append((project_id, str(severity), message, details or {}))

    def messages(self, severity: str | None = None) -> list[str]:
        return [m for _, s, m, _ in self.events if severity is None or s == severity]


# ============================================================================
# Builders
# ============================================================================


USER_COLUMNS = [
    ColumnDescriptor(name="id", data_type="int", nullable=False, is_primary_key=True),
    ColumnDescriptor(name="email", data_type="varchar", max_length=255),
    ColumnDescriptor(name="full_name", data_type="varchar", max_length=120),
    ColumnDescriptor(name="created_at", data_type="timestamp"),
]

ORDER_COLUMNS = [
    ColumnDescriptor(name="id", data_type="int", nullable=False, is_primary_key=True),
    ColumnDescriptor(name="user_id", data_type="int", nullable=False),
    ColumnDescriptor(name="total", data_type="numeric"),
]


def make_users(n: int) -> list[dict[str, Any]]:
    return [
        {
            "id": i,
            "email": f"user{i}@corp.example.org",
            "full_name": f"Person Number {i}",
            "created_at": "2024-01-01T00:00:00",
        }
        for i in range(1, n + 1)
    ]


def make_orders(n: int) -> list[dict[str, Any]]:
    return [
        {"id": i, "user_id": (i % 50) + 1, "total": f"{i}.50"}
        for i in range(1, n + 1)
    ]


def make_source(users: int = 20, orders: int = 20, **kwargs) -> FakeSourceAdapter:
    return FakeSourceAdapter(
        {
            "users": (USER_COLUMNS, make_users(users)),
            "orders": (ORDER_COLUMNS, make_orders(orders)),
        },
        relations=[
            RelationEdge(
                source_table="orders",
                source_column="user_id",
                target_table="users",
                target_column="id",
            )
        ],
        **kwargs,
    )


def make_snapshot(max_rows: int = 10) -> SchemaSnapshot:
    return SchemaSnapshot(
        tables={
            "users": TableDescriptor(columns=USER_COLUMNS, sample_rows=make_users(max_rows)),
            "orders": TableDescriptor(columns=ORDER_COLUMNS, sample_rows=make_orders(max_rows)),
        },
        relations=[
            RelationEdge(
                source_table="orders",
                source_column="user_id",
                target_table="users",
                target_column="id",
            )
        ],
    )


async def wait_until(predicate, timeout: float = 5.0) -> None:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def source_connection() -> SourceConnection:
    return SourceConnection(
        type="postgresql",
        host="db.internal",
        port=5432,
        database="crm",
        user="reader",
        password="source-secret-pw",
    )


@pytest.fixture
def target_connection() -> TargetConnection:
    return TargetConnection(
        uri="mongodb://localhost:27017",
        database_name="crm_archive",
        batch_size=50,
    )


@pytest.fixture
def snapshot() -> SchemaSnapshot:
    return make_snapshot()


@pytest.fixture
def events() -> RecordingEventLog:
    return RecordingEventLog()


@pytest.fixture
def backup_descriptor() -> BackupDescriptor:
    return BackupDescriptor(
        id="b1",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        tables=["users", "orders"],
        record_count=20,
        size_bytes=128,
        salt="00" * 16,
        iv="00" * 12,
        ciphertext_ref="p1/b1.bin",
    )


@pytest.fixture
def ready_project(
    source_connection, target_connection, snapshot, backup_descriptor
) -> Project:
    """Project that has gone through every step up to backup."""
    return Project(
        id="p1",
        code="crm-2024",
        state=ProjectState.BACKUP,
        source_connection=source_connection,
        target_connection=target_connection,
        snapshot=snapshot,
        obfuscation_config={},
        backups=[backup_descriptor],
    )


@pytest.fixture
def store(ready_project) -> InMemoryProjectStore:
    return InMemoryProjectStore([ready_project])
