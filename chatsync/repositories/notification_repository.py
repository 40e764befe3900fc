from typing import List, Optional

from chatsync.database.store import RemoteStore, StoreSubscription, join_path
from chatsync.models.notification import Notification


class NotificationRepository:

    root = "notifications"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def path(self, user_id: str, notification_id: Optional[str] = None) -> str:
        if notification_id is None:
            return join_path(self.root, user_id)
        return join_path(self.root, user_id, notification_id)

    async def save(self, notification: Notification) -> Notification:
        await self._store.write(self.path(notification.user_id, notification.id), notification.to_record())
        return notification

    async def get(self, user_id: str, notification_id: str) -> Optional[Notification]:
        raw = await self._store.read(self.path(user_id, notification_id))
        if raw is None:
            return None
        return Notification.from_record(raw, id=notification_id, user_id=user_id)

    async def list_for_user(self, user_id: str) -> List[Notification]:
        items = await self._store.children(self.path(user_id))
        notifications = [Notification.from_record(raw, id=key, user_id=user_id) for key, raw in items.items()]
        notifications.sort(key=lambda n: (n.timestamp, n.id), reverse=True)
        return notifications

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        await self._store.update(self.path(user_id, notification_id), {"isRead": True})

    async def delete(self, user_id: str, notification_id: str) -> None:
        await self._store.remove(self.path(user_id, notification_id))

    async def clear(self, user_id: str) -> None:
        await self._store.remove(self.path(user_id))

    def subscribe(self, user_id: str) -> StoreSubscription:
        return self._store.subscribe(self.path(user_id))
