from typing import Literal

from chatsync.models.base import Record


class FriendRequest(Record):

    from_user_id: str = ""
    to_user_id: str = ""
    status: Literal["pending", "accepted", "rejected"] = "pending"
    created_at: int = 0
