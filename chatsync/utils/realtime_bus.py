import asyncio
import logging
from typing import Awaitable, Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from chatsync.utils.retry import backoff_delay

logger = logging.getLogger(__name__)

OnMessage = Callable[[str], Awaitable[None]]
OnReconnect = Callable[[], Awaitable[None]]


class NoopBus:

    enabled = False

    async def publish(self, channel: str, message: str) -> None:
        return

    async def subscribe(self, channel: str, on_message: OnMessage, on_reconnect: Optional[OnReconnect] = None):
        class _Sub:
            async def run(self):
                await asyncio.Future()
            async def cancel(self):
                return
        return _Sub()

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        return

    async def clear_presence(self, user_id: str) -> None:
        return

    async def is_present(self, user_id: str) -> Optional[bool]:
        # unknown without redis
        return None

    async def close(self) -> None:
        return


class _RedisSubscription:

    def __init__(self, client, channel: str, on_message: OnMessage, on_reconnect: Optional[OnReconnect]) -> None:
        self._client = client
        self._channel = channel
        self._on_message = on_message
        self._on_reconnect = on_reconnect
        self._pubsub = None
        self._running = True

    async def _connect(self) -> None:
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(self._channel)

    async def run(self) -> None:
        failures = 0
        while self._running:
            try:
                if self._pubsub is None:
                    await self._connect()
                    if failures and self._on_reconnect is not None:
                        await self._on_reconnect()
                    failures = 0
                msg = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if msg and msg.get("type") == "message":
                    data = msg.get("data")
                    if isinstance(data, bytes):
                        data = data.decode("utf-8")
                    await self._on_message(data)
            except (RedisError, OSError) as exc:
                delay = backoff_delay(failures, 0.5, 30.0)
                failures += 1
                logger.warning("Bus subscription on %s lost (%s), reconnecting in %.1fs", self._channel, exc, delay)
                await self._reset()
                await asyncio.sleep(delay)

    async def _reset(self) -> None:
        pubsub, self._pubsub = self._pubsub, None
        if pubsub is not None:
            try:
                await pubsub.aclose()
            except (RedisError, OSError):
                logger.debug("Ignoring error while closing pubsub for %s", self._channel)

    async def cancel(self) -> None:
        self._running = False
        if self._pubsub is not None:
            try:
                await self._pubsub.unsubscribe(self._channel)
            except (RedisError, OSError):
                logger.debug("Ignoring error while unsubscribing from %s", self._channel)
        await self._reset()


class RedisBus:

    enabled = True

    def __init__(self, url: str) -> None:
        self._redis = redis.from_url(url)

    async def publish(self, channel: str, message: str) -> None:
        await self._redis.publish(channel, message)

    async def subscribe(self, channel: str, on_message: OnMessage, on_reconnect: Optional[OnReconnect] = None):
        return _RedisSubscription(self._redis, channel, on_message, on_reconnect)

    async def set_presence(self, user_id: str, ttl_seconds: int = 60) -> None:
        await self._redis.set(f"presence:{user_id}", "online", ex=ttl_seconds)

    async def clear_presence(self, user_id: str) -> None:
        await self._redis.delete(f"presence:{user_id}")

    async def is_present(self, user_id: str) -> Optional[bool]:
        ttl = await self._redis.ttl(f"presence:{user_id}")
        return bool(ttl and ttl > 0)

    async def close(self) -> None:
        await self._redis.aclose()


def create_bus(url: Optional[str]):
    if not url:
        return NoopBus()
    return RedisBus(url)
