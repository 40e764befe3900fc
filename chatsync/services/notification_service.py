import logging
from typing import Any, Dict, List, Optional, Tuple

from chatsync.exceptions import NotFoundError
from chatsync.models.notification import Notification, NotificationType, presentation
from chatsync.repositories.device_repository import DeviceRepository
from chatsync.repositories.notification_repository import NotificationRepository
from chatsync.services.subscription import RecordSubscription
from chatsync.utils.clock import Clock, now_ms
from chatsync.utils.ids import new_id

logger = logging.getLogger(__name__)

FEED_LIMIT = 50
BODY_PREVIEW = 50


def default_content(notification_type: str, origin_name: str, payload: Dict[str, Any]) -> Tuple[str, str]:
    if notification_type == NotificationType.FRIEND_ADDED:
        return "New Friend Added! 👥", f"{origin_name} added you as a friend"
    if notification_type == NotificationType.FRIEND_REQUEST:
        return "New Friend Request 🤝", f"{origin_name} sent you a friend request"
    if notification_type == NotificationType.MESSAGE:
        text = str(payload.get("preview", ""))
        if len(text) > BODY_PREVIEW:
            text = text[:BODY_PREVIEW] + "..."
        return "New Message 💬", f"{origin_name}: {text}"
    return "Notification", origin_name


class NotificationSubscription(RecordSubscription[Notification]):
    """New notifications for one user, oldest first.

    Notifications stamped before ``since`` are treated as already seen; read
    flags flipping on a delivered notification do not deliver it again.
    """

    def __init__(self, repo: NotificationRepository, user_id: str, since: int) -> None:
        super().__init__(repo.subscribe(user_id), lambda: repo.list_for_user(user_id))
        self.user_id = user_id
        self.since = since

    def record_id(self, record: Notification) -> str:
        return record.id

    def sort_key(self, record: Notification):
        return (record.timestamp, record.id)

    def parse(self, key: str, raw: dict) -> Notification:
        return Notification.from_record(raw, id=key, user_id=self.user_id)

    def replays(self, record: Notification) -> bool:
        return record.timestamp >= self.since


class NotificationDispatcher:
    """Writes notifications to each user's feed and hands them to push delivery."""

    def __init__(self, repo: NotificationRepository, push, devices: DeviceRepository, clock: Clock = now_ms) -> None:
        self._repo = repo
        self._push = push
        self._devices = devices
        self._clock = clock

    presentation = staticmethod(presentation)

    async def emit(
        self,
        notification_type: str,
        target_user_id: str,
        origin_user_id: str,
        origin_display_name: str,
        payload: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
        body: Optional[str] = None,
        deliver: bool = True,
    ) -> Notification:
        kind = notification_type.value if isinstance(notification_type, NotificationType) else str(notification_type)
        payload = dict(payload or {})
        default_title, default_body = default_content(kind, origin_display_name, payload)
        notification = Notification(
            id=new_id(),
            user_id=target_user_id,
            from_user_id=origin_user_id,
            from_user_name=origin_display_name,
            type=kind,
            title=title or default_title,
            message=body or default_body,
            timestamp=self._clock(),
            is_read=False,
            data=payload,
        )
        await self._repo.save(notification)
        logger.info("Notification %s (%s) for %s", notification.id, kind, target_user_id)
        if deliver:
            await self._deliver(notification)
        return notification

    async def _deliver(self, notification: Notification) -> None:
        if not self._push.enabled:
            return
        devices = await self._devices.get_tokens(notification.user_id, platform="fcm")
        if not devices:
            return
        sent = await self._push.deliver(notification, [d.token for d in devices])
        logger.debug("Pushed %s to %d/%d device(s)", notification.id, sent, len(devices))

    async def get(self, user_id: str, notification_id: str) -> Notification:
        notification = await self._repo.get(user_id, notification_id)
        if notification is None:
            raise NotFoundError(
                "Notification not found",
                error_code="NOTIFICATION_NOT_FOUND",
                details={"notification_id": notification_id},
            )
        return notification

    async def mark_read(self, user_id: str, notification_id: str) -> Notification:
        notification = await self.get(user_id, notification_id)
        if notification.is_read:
            return notification
        await self._repo.mark_read(user_id, notification_id)
        return notification.model_copy(update={"is_read": True})

    async def mark_all_read(self, user_id: str) -> int:
        count = 0
        for notification in await self._repo.list_for_user(user_id):
            if not notification.is_read:
                await self._repo.mark_read(user_id, notification.id)
                count += 1
        return count

    async def delete(self, user_id: str, notification_id: str) -> None:
        await self.get(user_id, notification_id)
        await self._repo.delete(user_id, notification_id)

    async def clear(self, user_id: str) -> None:
        await self._repo.clear(user_id)

    async def feed(self, user_id: str, limit: int = FEED_LIMIT) -> List[Notification]:
        return (await self._repo.list_for_user(user_id))[:limit]

    async def unread_count(self, user_id: str) -> int:
        return sum(1 for n in await self._repo.list_for_user(user_id) if not n.is_read)

    async def subscribe(self, user_id: str) -> NotificationSubscription:
        # registered before the feed is read so nothing written in between is lost
        subscription = NotificationSubscription(self._repo, user_id, since=self._clock())
        await subscription.prime()
        return subscription
