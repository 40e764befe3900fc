from typing import Any, Dict, List, Optional

from chatsync.database.store import RemoteStore, join_path
from chatsync.models.group import Group


class GroupRepository:

    root = "groups"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def path(self, group_id: str) -> str:
        return join_path(self.root, group_id)

    async def save_group(self, group: Group) -> Group:
        await self._store.write(self.path(group.group_id), group.to_record())
        return group

    async def get_group(self, group_id: str) -> Optional[Group]:
        raw = await self._store.read(self.path(group_id))
        if raw is None:
            return None
        return Group.from_record(raw, group_id=group_id)

    async def update_group(self, group_id: str, fields: Dict[str, Any]) -> Group:
        merged = await self._store.update(self.path(group_id), fields)
        return Group.from_record(merged, group_id=group_id)

    async def list_groups(self) -> List[Group]:
        items = await self._store.children(self.root)
        return [Group.from_record(raw, group_id=key) for key, raw in items.items()]
