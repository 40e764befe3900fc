from typing import List, Optional

from chatsync.database.store import RemoteStore, join_path
from chatsync.models.friend_request import FriendRequest


class FriendRepository:
    """Pending friend requests under ``friend_requests/{to}/{from}``."""

    root = "friend_requests"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def path(self, from_user: str, to_user: str) -> str:
        return join_path(self.root, to_user, from_user)

    async def create_friend_request(self, request: FriendRequest) -> FriendRequest:
        await self._store.write(self.path(request.from_user_id, request.to_user_id), request.to_record())
        return request

    async def get_friend_request(self, from_user: str, to_user: str) -> Optional[FriendRequest]:
        raw = await self._store.read(self.path(from_user, to_user))
        if raw is None:
            return None
        return FriendRequest.from_record(raw, from_user_id=from_user, to_user_id=to_user)

    async def delete_friend_request(self, from_user: str, to_user: str) -> None:
        await self._store.remove(self.path(from_user, to_user))

    async def list_received_requests(self, user_id: str) -> List[FriendRequest]:
        items = await self._store.children(join_path(self.root, user_id))
        requests = [FriendRequest.from_record(raw, from_user_id=key, to_user_id=user_id) for key, raw in items.items()]
        requests = [r for r in requests if r.status == "pending"]
        requests.sort(key=lambda r: r.created_at)
        return requests
