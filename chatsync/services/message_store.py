import logging
from typing import Any, Dict, List

from chatsync.database.store import StoreSubscription
from chatsync.exceptions import NotFoundError
from chatsync.models.message import Message, MessageType
from chatsync.repositories.message_repository import MessageRepository
from chatsync.services.subscription import RecordSubscription
from chatsync.utils.clock import Clock, now_ms
from chatsync.utils.ids import new_id

logger = logging.getLogger(__name__)


class MessageSubscription(RecordSubscription[Message]):
    """Live, ordered view of one conversation's message log.

    The first messages out are the existing history ordered by
    ``(timestamp, message_id)``; after that come live appends.
    """

    def __init__(self, repo: MessageRepository, conversation_key: str, raw: StoreSubscription) -> None:
        super().__init__(raw, lambda: repo.get_messages_by_conversation(conversation_key))
        self.conversation_key = conversation_key

    def record_id(self, record: Message) -> str:
        return record.message_id

    def sort_key(self, record: Message):
        return record.sort_key

    def parse(self, key: str, raw: dict) -> Message:
        return Message.from_record(raw, message_id=key)


class MessageStore:
    """Append-only message logs with per-message read state."""

    def __init__(self, repo: MessageRepository, clock: Clock = now_ms) -> None:
        self._repo = repo
        self._clock = clock
        self._last_timestamp: Dict[str, int] = {}

    def _stamp(self, conversation_key: str) -> int:
        # never older than the newest message this store appended to the log
        timestamp = max(self._clock(), self._last_timestamp.get(conversation_key, 0))
        self._last_timestamp[conversation_key] = timestamp
        return timestamp

    async def append_message(self, conversation_key: str, message: Message) -> Message:
        message.validate_content()
        path = self._repo.path(conversation_key)
        update: Dict[str, Any] = {
            "message_id": new_id(),
            "timestamp": self._stamp(conversation_key),
            "is_read": False,
        }
        if message.kind is MessageType.TEXT:
            update["text"] = message.text.strip()
        stored = message.model_copy(update=update)
        await self._repo.save_message(conversation_key, stored)
        logger.info("Appended %s message %s to %s", stored.kind.value, stored.message_id, path)
        return stored

    async def append(self, conversation_key: str, message: Message) -> str:
        stored = await self.append_message(conversation_key, message)
        return stored.message_id

    def subscribe(self, conversation_key: str) -> MessageSubscription:
        # register before reading history so nothing appended in between is lost
        raw = self._repo.subscribe(conversation_key)
        return MessageSubscription(self._repo, conversation_key, raw)

    async def history(self, conversation_key: str) -> List[Message]:
        return await self._repo.get_messages_by_conversation(conversation_key)

    async def get_message(self, conversation_key: str, message_id: str) -> Message:
        message = await self._repo.get_message(conversation_key, message_id)
        if message is None:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"conversation_key": conversation_key, "message_id": message_id},
            )
        return message

    async def mark_read(self, conversation_key: str, up_to_message_id: str, reader_id: str) -> int:
        """Mark every message up to and including ``up_to_message_id`` that was
        sent to ``reader_id`` as read. Returns how many flags flipped."""
        messages = await self._repo.get_messages_by_conversation(conversation_key)
        target = next((m for m in messages if m.message_id == up_to_message_id), None)
        if target is None:
            raise NotFoundError(
                "Message not found",
                error_code="MESSAGE_NOT_FOUND",
                details={"conversation_key": conversation_key, "message_id": up_to_message_id},
            )
        to_flip = [
            m.message_id
            for m in messages
            if m.sort_key <= target.sort_key
            and m.receiver_id == reader_id
            and m.sender_id != reader_id
            and not m.is_read
        ]
        flipped = await self._repo.mark_read(conversation_key, to_flip)
        if flipped:
            logger.info("%s read %d message(s) in %s", reader_id, flipped, conversation_key)
        return flipped

    async def unread_count(self, conversation_key: str, reader_id: str) -> int:
        messages = await self._repo.get_messages_by_conversation(conversation_key)
        return sum(1 for m in messages if m.receiver_id == reader_id and m.sender_id != reader_id and not m.is_read)
