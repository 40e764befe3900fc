import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient

from chatsync.config import Settings
from chatsync.database.memory import MemoryStore
from chatsync.database.mongo import MongoStore
from chatsync.database.store import RemoteStore

logger = logging.getLogger(__name__)


class StoreConnection:
    """Owns the backend client and the store built on it."""

    def __init__(self, settings: Settings, bus) -> None:
        self._settings = settings
        self._bus = bus
        self._client: Optional[AsyncIOMotorClient] = None
        self.store: Optional[RemoteStore] = None

    async def connect(self) -> RemoteStore:
        retry = {
            "retry_attempts": self._settings.store_retry_attempts,
            "retry_base_delay": self._settings.store_retry_base_delay,
            "retry_max_delay": self._settings.store_retry_max_delay,
        }
        if self._settings.store_backend == "mongo":
            self._client = AsyncIOMotorClient(self._settings.mongo_url)
            self.store = MongoStore(self._client[self._settings.mongo_db], self._bus, **retry)
            logger.info("Connected to MongoDB database %s", self._settings.mongo_db)
        else:
            self.store = MemoryStore(**retry)
            logger.info("Using in-memory store")
        await self.store.start()
        return self.store

    def get_database(self):
        if self._client is None:
            return None
        return self._client[self._settings.mongo_db]

    async def close(self) -> None:
        if self.store is not None:
            await self.store.close()
        if self._client is not None:
            self._client.close()
            self._client = None
