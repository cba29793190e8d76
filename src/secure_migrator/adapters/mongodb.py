"""Async MongoDB target client.

Provides ``MongoTargetClient``, an implementation of the ``TargetClient``
protocol on top of pymongo's native asyncio client.

Usage:
    from secure_migrator.adapters.mongodb import MongoTargetClient

    client = MongoTargetClient(target)
    await client.ping()
    await client.insert_many("users", [{"name": "Alice"}])
    await client.close()
"""

from pymongo import AsyncMongoClient

from secure_migrator.config.models import TargetConnection


class MongoTargetClient:
    """MongoDB implementation of the ``TargetClient`` protocol.

    Server selection is bounded by the target's ``timeout_seconds`` so an
    unreachable server fails fast instead of stalling a batch.

    Args:
        target: Target connection descriptor.
    """

    def __init__(self, target: TargetConnection) -> None:
        self._client: AsyncMongoClient = AsyncMongoClient(
            target.uri,
            serverSelectionTimeoutMS=int(target.timeout_seconds * 1000),
        )
        self._db = self._client[target.database_name]

    async def ping(self) -> None:
        await self._db.command("ping")

    async def prepare_collection(self, collection: str) -> None:
        await self._db[collection].delete_many({})

    async def insert_many(self, collection: str, documents: list[dict]) -> int:
        if not documents:
            return 0
        result = await self._db[collection].insert_many(documents, ordered=True)
        return len(result.inserted_ids)

    async def close(self) -> None:
        await self._client.close()
