import asyncio

import pytest

from chatsync.database.memory import MemoryStore
from chatsync.database.store import join_path, paths_overlap, split_path
from chatsync.exceptions import TransientError, ValidationError
from chatsync.utils.retry import backoff_delay


class FlakyStore(MemoryStore):
    """Fails the first ``failures`` writes with a connection error."""

    def __init__(self, failures: int, **kwargs) -> None:
        super().__init__(**kwargs)
        self.failures = failures
        self.calls = 0

    async def _write(self, path, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("backend unreachable")
        await super()._write(path, value)


def test_join_path_rejects_bad_segments():
    assert join_path("users", "alice") == "users/alice"
    with pytest.raises(ValidationError):
        join_path("users", "")
    with pytest.raises(ValidationError):
        join_path("users", "a/b")


def test_path_helpers():
    assert split_path("/a//b/") == ["a", "b"]
    assert paths_overlap("messages/k", "messages/k/1")
    assert paths_overlap("messages/k/1", "messages")
    assert not paths_overlap("messages/k", "messages/k2")


async def test_write_read_and_remove_prunes_parents(store):
    await store.write("a/b/c", {"x": 1})
    assert await store.read("a") == {"b": {"c": {"x": 1}}}
    await store.remove("a/b/c")
    assert await store.read("a") is None
    assert await store.children("a") == {}


async def test_read_returns_a_copy(store):
    await store.write("users/alice", {"friends": ["bob"]})
    value = await store.read("users/alice")
    value["friends"].append("mallory")
    assert await store.read("users/alice") == {"friends": ["bob"]}


async def test_update_merges_fields(store):
    await store.write("users/alice", {"displayName": "Alice", "isOnline": True})
    merged = await store.update("users/alice", {"isOnline": False})
    assert merged == {"displayName": "Alice", "isOnline": False}


async def test_subscribers_see_overlapping_changes_only(store):
    parent = store.subscribe("messages/k")
    other = store.subscribe("messages/other")
    await store.write("messages/k/1", {"message": "hi"})
    event = await asyncio.wait_for(parent.get(), 1)
    assert event.path == "messages/k/1"
    assert event.value == {"message": "hi"}
    other.cancel()
    assert [e async for e in other] == []


async def test_retry_recovers_from_transient_failures():
    store = FlakyStore(failures=2, retry_attempts=3, retry_base_delay=0, retry_max_delay=0)
    await store.write("users/alice", {"email": "a@example.com"})
    assert await store.read("users/alice") == {"email": "a@example.com"}


async def test_retry_gives_up_with_transient_error():
    store = FlakyStore(failures=10, retry_attempts=3, retry_base_delay=0, retry_max_delay=0)
    with pytest.raises(TransientError) as info:
        await store.write("users/alice", {"email": "a@example.com"})
    assert info.value.status_code == 503
    assert "backend unreachable" in info.value.details["reason"]
    assert store.calls == 3


def test_backoff_delay_is_capped():
    assert backoff_delay(0, 0.5, 10) == 0.5
    assert backoff_delay(3, 0.5, 10) == 4.0
    assert backoff_delay(10, 0.5, 10) == 10
