import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Generic, List, Set, TypeVar

from chatsync.database.store import ChangeEvent, StoreSubscription, deep_get, split_path
from chatsync.models.base import Record

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)


class RecordSubscription(Generic[R]):
    """Live, ordered view of the records stored under one path.

    ``load`` reads every record currently under the path. Records that
    ``replays()`` accepts come out first, in ``sort_key`` order, followed by
    live writes. The store may deliver a record more than once, so every
    record id is handed out at most once. ``cancel()`` only stops this handle.
    """

    def __init__(self, raw: StoreSubscription, load: Callable[[], Awaitable[List[R]]]) -> None:
        self._raw = raw
        self._load = load
        self._base = split_path(raw.path)
        self._seen: Set[str] = set()
        self._pending: Deque[R] = deque()
        self._primed = False

    def record_id(self, record: R) -> str:
        raise NotImplementedError

    def sort_key(self, record: R) -> Any:
        raise NotImplementedError

    def parse(self, key: str, raw: dict) -> R:
        raise NotImplementedError

    def replays(self, record: R) -> bool:
        return True

    @property
    def cancelled(self) -> bool:
        return self._raw.closed

    async def prime(self) -> None:
        """Read what is already stored. Called once, before the first ``get``."""
        if self._primed:
            return
        self._primed = True
        existing = await self._load()
        for record in existing:
            if not self.replays(record):
                self._seen.add(self.record_id(record))
        self._enqueue(existing)

    def _enqueue(self, records: List[R]) -> None:
        for record in sorted(records, key=self.sort_key):
            record_id = self.record_id(record)
            if record_id in self._seen:
                continue
            self._seen.add(record_id)
            self._pending.append(record)

    def _records_in(self, event: ChangeEvent) -> List[R]:
        parts = split_path(event.path)
        if len(parts) <= len(self._base):
            subtree = deep_get(event.value, self._base[len(parts):])
        elif len(parts) == len(self._base) + 1:
            subtree = {parts[-1]: event.value}
        else:
            # a single field inside a record changed
            return []
        if not isinstance(subtree, dict):
            return []
        return [self.parse(key, raw) for key, raw in subtree.items() if isinstance(raw, dict)]

    async def get(self) -> R:
        if self.cancelled:
            raise StopAsyncIteration
        await self.prime()
        while not self._pending:
            event = await self._raw.get()
            if event.resync:
                logger.debug("Resyncing subscription on %s", self._raw.path)
                self._enqueue(await self._load())
                continue
            self._enqueue(self._records_in(event))
        return self._pending.popleft()

    async def run(self, callback: Callable[[R], Awaitable[Any]]) -> None:
        async for record in self:
            await callback(record)

    def cancel(self) -> None:
        self._raw.cancel()

    def __aiter__(self):
        return self

    async def __anext__(self) -> R:
        return await self.get()
