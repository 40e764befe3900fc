import logging
from typing import List, Optional

from chatsync.exceptions import ChatError, ValidationError
from chatsync.models.conversation import ConversationSummary
from chatsync.models.message import Message, MessageType
from chatsync.models.notification import NotificationType
from chatsync.repositories.user_repository import UserRepository
from chatsync.services.conversation_indexer import ConversationIndexer, preview_of
from chatsync.services.friend_service import FriendService
from chatsync.services.message_store import MessageStore, MessageSubscription
from chatsync.services.notification_service import NotificationDispatcher
from chatsync.services.presence_service import PresenceTracker

logger = logging.getLogger(__name__)


class ChatService:
    """Direct messaging: store, then summaries, then notification."""

    def __init__(
        self,
        message_store: MessageStore,
        indexer: ConversationIndexer,
        friends: FriendService,
        presence: PresenceTracker,
        notifications: NotificationDispatcher,
        users: UserRepository,
        media=None,
    ) -> None:
        self._store = message_store
        self._indexer = indexer
        self._friends = friends
        self._presence = presence
        self._notifications = notifications
        self._users = users
        self._media = media

    async def open_conversation(self, user_id: str, peer_id: str) -> str:
        key = self._indexer.key_for(user_id, peer_id)
        await self._friends.ensure_can_message(user_id, peer_id)
        return key

    async def send_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        message = Message(sender_id=sender_id, receiver_id=receiver_id, text=content, kind=MessageType.TEXT)
        return await self._send(message)

    async def send_image(
        self,
        sender_id: str,
        receiver_id: str,
        image_url: Optional[str] = None,
        image_bytes: Optional[bytes] = None,
        filename: str = "image.jpg",
    ) -> Message:
        if not image_bytes and not (image_url and image_url.strip()):
            raise ValidationError("Image message needs an image reference", error_code="EMPTY_IMAGE")
        if image_bytes:
            if self._media is None:
                raise ValidationError("Image uploads are not configured", error_code="MEDIA_DISABLED")
            await self.open_conversation(sender_id, receiver_id)
            image_url = await self._media.upload(image_bytes, filename)
        message = Message(sender_id=sender_id, receiver_id=receiver_id, image_url=image_url or "", kind=MessageType.IMAGE)
        return await self._send(message)

    async def _send(self, message: Message) -> Message:
        message.validate_content()
        key = await self.open_conversation(message.sender_id, message.receiver_id)
        stored = await self._store.append_message(key, message)
        try:
            await self._indexer.on_message_appended(stored)
        except ChatError as exc:
            # the log already has the message; the summary heals on the next append or resync
            logger.warning("Summary update for %s failed: %s", key, exc)
        try:
            await self._notify_receiver(key, stored)
        except ChatError as exc:
            # the message is stored, so the send still succeeds
            logger.warning("Notification for message %s failed: %s", stored.message_id, exc)
        return stored

    async def _notify_receiver(self, key: str, stored: Message) -> None:
        sender = await self._users.get_user_by_id(stored.sender_id)
        online = await self._presence.is_online(stored.receiver_id)
        await self._notifications.emit(
            NotificationType.MESSAGE,
            target_user_id=stored.receiver_id,
            origin_user_id=stored.sender_id,
            origin_display_name=(sender.display_name if sender else "") or "Someone",
            payload={"conversationKey": key, "messageId": stored.message_id, "preview": preview_of(stored)},
            deliver=not online,
        )

    async def mark_read(self, reader_id: str, peer_id: str, up_to_message_id: str) -> int:
        key = self._indexer.key_for(reader_id, peer_id)
        flipped = await self._store.mark_read(key, up_to_message_id, reader_id)
        remaining = await self._store.unread_count(key, reader_id)
        await self._indexer.on_messages_read(key, reader_id, remaining)
        return flipped

    async def get_history(self, user_id: str, peer_id: str) -> List[Message]:
        return await self._store.history(self._indexer.key_for(user_id, peer_id))

    async def subscribe(self, user_id: str, peer_id: str) -> MessageSubscription:
        key = await self.open_conversation(user_id, peer_id)
        return self._store.subscribe(key)

    async def unread_count(self, reader_id: str, peer_id: str) -> int:
        summary = await self._indexer.get_summary(reader_id, peer_id)
        return summary.unread_count if summary else 0

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        return await self._indexer.list_for_user(user_id)

    async def resync(self, user_id: str, peer_id: str) -> None:
        await self._indexer.resync(self._indexer.key_for(user_id, peer_id))
