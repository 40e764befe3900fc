import pytest

from chatsync.auth import AuthContext, AuthTransition
from chatsync.exceptions import UnauthorizedError


async def test_transitions_in_order():
    auth = AuthContext()
    stream = auth.transitions()
    auth.sign_in("alice")
    auth.sign_in("alice")
    auth.sign_in("bob")
    auth.sign_out()
    auth.close()

    assert [t async for t in stream] == [
        AuthTransition("alice", True),
        AuthTransition("alice", False),
        AuthTransition("bob", True),
        AuthTransition("bob", False),
    ]


def test_require_user_id():
    auth = AuthContext()
    with pytest.raises(UnauthorizedError):
        auth.require_user_id()
    auth.sign_in("alice")
    assert auth.require_user_id() == "alice"
