"""Source and target adapters package.

Provides the ``SourceAdapter`` and ``TargetClient`` protocols, one
SQLAlchemy-backed source adapter per supported engine, and the MongoDB
target client.

The MySQL and SQL Server adapters import without their drivers; the driver
(``aiomysql`` / ``aioodbc``) is only needed when a connection is opened.

Usage:
    from secure_migrator.adapters import SourceAdapter, PostgresSourceAdapter
"""

from secure_migrator.adapters.base import SourceAdapter, TargetClient
from secure_migrator.adapters.mongodb import MongoTargetClient
from secure_migrator.adapters.mysql import MySQLSourceAdapter
from secure_migrator.adapters.postgres import PostgresSourceAdapter
from secure_migrator.adapters.sql import SqlSourceAdapter
from secure_migrator.adapters.sqlserver import SqlServerSourceAdapter

__all__ = [
    "SourceAdapter",
    "TargetClient",
    "SqlSourceAdapter",
    "PostgresSourceAdapter",
    "MySQLSourceAdapter",
    "SqlServerSourceAdapter",
    "MongoTargetClient",
]
