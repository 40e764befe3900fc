"""
Remote keyed store abstraction.

The messaging core only ever talks to the backend through path-addressed
operations (``users/{uid}``, ``messages/{key}/{id}``, ...). A concrete store
implements the ``_read``/``_write``/``_update`` primitives; this base class
adds retries for transient backend errors and local change fan-out to
subscribers.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Type

from chatsync.exceptions import ValidationError
from chatsync.utils.retry import retry_async

logger = logging.getLogger(__name__)


@dataclass
class ChangeEvent:
    path: str
    value: Any
    # set when a subscriber may have missed events and should re-read
    resync: bool = False


def join_path(*parts: str) -> str:
    for part in parts:
        if not part or "/" in part:
            raise ValidationError(f"Invalid path segment: {part!r}", details={"segment": part})
    return "/".join(parts)


def split_path(path: str) -> List[str]:
    return [p for p in path.split("/") if p]


def paths_overlap(a: str, b: str) -> bool:
    return a == b or a.startswith(b + "/") or b.startswith(a + "/")


class StoreSubscription:
    """Queue of change events for one subscriber of one path."""

    _CLOSED = object()

    def __init__(self, path: str, store: "RemoteStore") -> None:
        self.path = path
        self._store = store
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    async def get(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is self._CLOSED:
            # keep the sentinel for any other waiter
            self._queue.put_nowait(item)
            raise StopAsyncIteration
        return item

    def cancel(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        return await self.get()


class RemoteStore:

    transient_errors: Tuple[Type[BaseException], ...] = (ConnectionError, TimeoutError)

    def __init__(self, retry_attempts: int = 4, retry_base_delay: float = 0.2, retry_max_delay: float = 5.0) -> None:
        self._subscriptions: List[StoreSubscription] = []
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def _retry(self, operation, description: str):
        return await retry_async(
            operation,
            retry_on=self.transient_errors,
            attempts=self._retry_attempts,
            base_delay=self._retry_base_delay,
            max_delay=self._retry_max_delay,
            description=description,
        )

    async def read(self, path: str) -> Any:
        value = await self._retry(lambda: self._read(path), f"read {path}")
        return copy.deepcopy(value)

    async def children(self, path: str) -> Dict[str, Any]:
        value = await self.read(path)
        return value if isinstance(value, dict) else {}

    async def write(self, path: str, value: Any) -> None:
        value = copy.deepcopy(value)
        await self._retry(lambda: self._write(path, value), f"write {path}")
        await self._changed(ChangeEvent(path, value))

    async def update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = copy.deepcopy(fields)
        merged = await self._retry(lambda: self._update(path, fields), f"update {path}")
        await self._changed(ChangeEvent(path, copy.deepcopy(merged)))
        return merged

    async def remove(self, path: str) -> None:
        await self._retry(lambda: self._write(path, None), f"remove {path}")
        await self._changed(ChangeEvent(path, None))

    def subscribe(self, path: str) -> StoreSubscription:
        subscription = StoreSubscription(path, self)
        self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: StoreSubscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass

    def _notify(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions):
            if paths_overlap(subscription.path, event.path):
                subscription.push(copy.deepcopy(event))

    def _request_resync(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.push(ChangeEvent(subscription.path, None, resync=True))

    async def _changed(self, event: ChangeEvent) -> None:
        self._notify(event)
        await self._publish(event)

    async def _publish(self, event: ChangeEvent) -> None:
        return

    async def _read(self, path: str) -> Any:
        raise NotImplementedError

    async def _write(self, path: str, value: Any) -> None:
        raise NotImplementedError

    async def _update(self, path: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    async def start(self) -> None:
        return

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.cancel()


def deep_get(tree: Optional[Dict[str, Any]], parts: List[str]) -> Any:
    node: Any = tree
    for part in parts:
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node
