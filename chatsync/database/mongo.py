import asyncio
import json
import logging
import re
import uuid
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure
from redis.exceptions import RedisError

from chatsync.database.store import ChangeEvent, RemoteStore, split_path

logger = logging.getLogger(__name__)

CHANGES_CHANNEL = "chatsync:changes"


class MongoStore(RemoteStore):
    """One document per written path in the ``nodes`` collection.

    Reading a path with no document of its own assembles its descendants
    into a nested mapping. Changes are fanned out to other processes through
    the realtime bus.
    """

    transient_errors = (ConnectionFailure, ConnectionError, TimeoutError)

    def __init__(self, db: AsyncIOMotorDatabase, bus, **kwargs) -> None:
        super().__init__(**kwargs)
        self._db = db
        self._bus = bus
        self._origin = uuid.uuid4().hex
        self._listener = None
        self._listener_task: Optional[asyncio.Task] = None

    @property
    def collection(self):
        return self._db["nodes"]

    @staticmethod
    def _descendants(path: str) -> Dict[str, Any]:
        return {"_id": {"$regex": "^" + re.escape(path) + "/"}}

    async def _read(self, path: str) -> Any:
        doc = await self.collection.find_one({"_id": path})
        if doc is not None:
            return doc.get("value")
        tree: Dict[str, Any] = {}
        prefix_len = len(split_path(path))
        async for child in self.collection.find(self._descendants(path)):
            parts = split_path(child["_id"])[prefix_len:]
            node = tree
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = child.get("value")
        return tree or None

    async def _write(self, path: str, value: Any) -> None:
        await self.collection.delete_many(self._descendants(path))
        if value is None:
            await self.collection.delete_one({"_id": path})
            return
        await self.collection.replace_one({"_id": path}, {"_id": path, "value": value}, upsert=True)

    async def _update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = await self.collection.find_one_and_update(
            {"_id": path},
            {"$set": {f"value.{k}": v for k, v in fields.items()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return doc.get("value") or {}

    async def _publish(self, event: ChangeEvent) -> None:
        if not self._bus.enabled:
            return
        payload = json.dumps({"origin": self._origin, "path": event.path, "value": event.value})
        try:
            await self._bus.publish(CHANGES_CHANNEL, payload)
        except (RedisError, OSError) as exc:
            # the write already landed; remote subscribers catch up on resync
            logger.warning("Could not fan out change on %s: %s", event.path, exc)

    async def _on_bus_message(self, raw: str) -> None:
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Dropping malformed change event: %r", raw[:200])
            return
        if not isinstance(data, dict) or data.get("origin") == self._origin:
            return
        self._notify(ChangeEvent(data.get("path", ""), data.get("value")))

    async def _on_bus_reconnect(self) -> None:
        logger.info("Change bus reconnected, asking subscribers to resync")
        self._request_resync()

    async def start(self) -> None:
        if self._bus.enabled and self._listener_task is None:
            self._listener = await self._bus.subscribe(CHANGES_CHANNEL, self._on_bus_message, self._on_bus_reconnect)
            self._listener_task = asyncio.create_task(self._listener.run())

    async def close(self) -> None:
        await super().close()
        if self._listener is not None:
            await self._listener.cancel()
        if self._listener_task is not None:
            self._listener_task.cancel()
            self._listener_task = None
