from typing import Any, Dict, Optional, Set

from chatsync.database.store import RemoteStore, join_path
from chatsync.models.user import User


class UserRepository:

    root = "users"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def path(self, uid: str) -> str:
        return join_path(self.root, uid)

    async def create_user(self, user: User) -> User:
        await self._store.write(self.path(user.uid), user.to_record())
        return user

    async def get_user_by_id(self, uid: str) -> Optional[User]:
        raw = await self._store.read(self.path(uid))
        if raw is None:
            return None
        return User.from_record(raw, uid=uid)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for uid, raw in (await self._store.children(self.root)).items():
            user = User.from_record(raw, uid=uid)
            if user.email.lower() == wanted:
                return user
        return None

    async def update_fields(self, uid: str, fields: Dict[str, Any]) -> User:
        merged = await self._store.update(self.path(uid), fields)
        return User.from_record(merged, uid=uid)

    async def set_friends(self, uid: str, friends: Set[str]) -> None:
        await self._store.update(self.path(uid), {"friends": sorted(friends)})
