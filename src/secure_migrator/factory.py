"""Adapter factory.

Maps a source connection's engine tag to its adapter class and builds the
target client.  Adding an engine means registering one adapter class in
``SOURCE_ADAPTERS``.

Usage:
    from secure_migrator.factory import get_source_adapter

    adapter = get_source_adapter(connection)
    ok = await adapter.test_connection()
"""

import asyncio
import logging

from secure_migrator.adapters.base import SourceAdapter, TargetClient
from secure_migrator.adapters.mongodb import MongoTargetClient
from secure_migrator.adapters.mysql import MySQLSourceAdapter
from secure_migrator.adapters.postgres import PostgresSourceAdapter
from secure_migrator.adapters.sql import SqlSourceAdapter
from secure_migrator.adapters.sqlserver import SqlServerSourceAdapter
from secure_migrator.config.models import SourceConnection, TargetConnection
from secure_migrator.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

SOURCE_ADAPTERS: dict[str, type[SqlSourceAdapter]] = {
    "postgresql": PostgresSourceAdapter,
    "postgres": PostgresSourceAdapter,
    "mysql": MySQLSourceAdapter,
    "mariadb": MySQLSourceAdapter,
    "sqlserver": SqlServerSourceAdapter,
    "mssql": SqlServerSourceAdapter,
}


def supported_engines() -> list[str]:
    """Engine tags accepted in ``SourceConnection.type``."""
    return sorted(SOURCE_ADAPTERS)


def get_source_adapter(connection: SourceConnection) -> SourceAdapter:
    """Create the source adapter for a connection's engine.

    Args:
        connection: Source connection descriptor.

    Returns:
        An adapter implementing ``SourceAdapter``.

    Raises:
        DatabaseConnectionError: If the engine tag is unsupported or its
            driver is not installed.
    """
    adapter_cls = SOURCE_ADAPTERS.get(connection.type.lower())
    if adapter_cls is None:
        raise DatabaseConnectionError(
            f"Unsupported database type: {connection.type}. "
            f"Supported: {', '.join(supported_engines())}"
        )
    try:
        return adapter_cls(connection)
    except ImportError as e:
        raise DatabaseConnectionError(
            f"Driver for {connection.type} is not installed: {e}"
        )


def get_target_client(target: TargetConnection) -> TargetClient:
    """Create the document-store client for a target descriptor."""
    return MongoTargetClient(target)


async def check_source_connection(
    connection: SourceConnection,
    adapter_factory=get_source_adapter,
) -> bool:
    """Open a connection to the source and run ``SELECT 1``.

    Args:
        connection: Source connection descriptor.
        adapter_factory: Callable building the adapter (injectable for tests).

    Returns:
        ``True`` when the source answers.

    Raises:
        DatabaseConnectionError: On unreachable host, bad credentials,
            unsupported engine, or timeout.  The driver message is kept.
    """
    adapter = adapter_factory(connection)
    try:
        return await asyncio.wait_for(
            adapter.test_connection(), timeout=connection.timeout_seconds
        )
    except TimeoutError:
        raise DatabaseConnectionError(
            f"Connection to {connection.display_url()} timed out after "
            f"{connection.timeout_seconds}s"
        )
    except DatabaseConnectionError:
        raise
    except Exception as e:
        logger.debug("Source connection test failed: %s", e)
        raise DatabaseConnectionError(f"Failed to connect to database: {e}")
    finally:
        await adapter.close()


async def check_target_connection(
    target: TargetConnection,
    target_factory=get_target_client,
) -> None:
    """Ping the target document store.

    Raises:
        DatabaseConnectionError: If the target cannot be reached in time.
    """
    client = target_factory(target)
    try:
        await asyncio.wait_for(client.ping(), timeout=target.timeout_seconds)
    except TimeoutError:
        raise DatabaseConnectionError(
            f"Connection to target database '{target.database_name}' timed out"
        )
    except Exception as e:
        raise DatabaseConnectionError(f"Failed to connect to target database: {e}")
    finally:
        await client.close()
