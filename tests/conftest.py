import pytest

from chatsync.container import build_core
from chatsync.database.memory import MemoryStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Settable epoch-ms clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingPush:

    enabled = True

    def __init__(self) -> None:
        self.sent = []

    async def deliver(self, notification, tokens):
        self.sent.append((notification, list(tokens)))
        return len(tokens)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore(retry_attempts=3, retry_base_delay=0, retry_max_delay=0)


@pytest.fixture
def push():
    return RecordingPush()


@pytest.fixture
def core(store, clock, push):
    return build_core(store, push=push, clock=clock)


@pytest.fixture
async def users(core):
    alice = await core.users.register_user("alice", "alice@example.com", "Alice")
    bob = await core.users.register_user("bob", "bob@example.com", "Bob")
    carol = await core.users.register_user("carol", "carol@example.com", "Carol")
    return alice, bob, carol


@pytest.fixture
async def friends(core, users):
    await core.friends.add_friend("alice", "bob")
    return users
