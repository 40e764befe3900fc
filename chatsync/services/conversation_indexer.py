import logging
from typing import List, Optional, Tuple

from chatsync.exceptions import InvalidConversationError, ValidationError
from chatsync.models.conversation import ConversationSummary
from chatsync.models.message import Message, MessageType
from chatsync.repositories.conversation_repository import ConversationRepository
from chatsync.repositories.message_repository import MessageRepository

logger = logging.getLogger(__name__)

IMAGE_PLACEHOLDER = "📷 Photo"
KEY_SEPARATOR = "_"
PREVIEW_LENGTH = 200


def key_for(user_a: str, user_b: str) -> str:
    """Conversation key for a pair of users, identical whichever side asks."""
    for uid in (user_a, user_b):
        if not isinstance(uid, str) or not uid or "/" in uid or KEY_SEPARATOR in uid:
            raise ValidationError(f"Invalid user id: {uid!r}", error_code="INVALID_USER_ID")
    if user_a == user_b:
        raise InvalidConversationError(
            "A conversation needs two different participants",
            details={"user_id": user_a},
        )
    return KEY_SEPARATOR.join(sorted([user_a, user_b]))


def participants(conversation_key: str) -> Tuple[str, str]:
    parts = conversation_key.split(KEY_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise InvalidConversationError(
            f"Not a direct conversation key: {conversation_key!r}",
            details={"conversation_key": conversation_key},
        )
    return parts[0], parts[1]


def preview_of(message: Message) -> str:
    if message.kind is MessageType.IMAGE:
        return IMAGE_PLACEHOLDER
    return message.text[:PREVIEW_LENGTH]


class ConversationIndexer:

    def __init__(self, conversation_repo: ConversationRepository, message_repo: MessageRepository) -> None:
        self._conversations = conversation_repo
        self._messages = message_repo

    key_for = staticmethod(key_for)
    participants = staticmethod(participants)

    async def on_message_appended(self, message: Message) -> None:
        key = key_for(message.sender_id, message.receiver_id)
        # each side is written on its own; if the second write never lands
        # that summary stays stale until the next append or resync
        for user_id, peer_id in ((message.sender_id, message.receiver_id), (message.receiver_id, message.sender_id)):
            current = await self._conversations.get_summary(user_id, key)
            unread = current.unread_count if current else 0
            if user_id == message.receiver_id:
                unread += 1
            await self._conversations.save_summary(
                user_id,
                ConversationSummary(
                    conversation_key=key,
                    peer_id=peer_id,
                    last_message=preview_of(message),
                    last_message_time=message.timestamp,
                    last_sender_id=message.sender_id,
                    last_message_id=message.message_id,
                    unread_count=unread,
                ),
            )

    async def on_messages_read(self, conversation_key: str, reader_id: str, remaining: int = 0) -> None:
        if await self._conversations.get_summary(reader_id, conversation_key) is None:
            return
        await self._conversations.reset_unread(reader_id, conversation_key, max(remaining, 0))

    async def resync(self, key: str) -> None:
        """Rebuild both summaries from the message log."""
        user_a, user_b = participants(key)
        messages = await self._messages.get_messages_by_conversation(key)
        if not messages:
            return
        last = messages[-1]
        for user_id, peer_id in ((user_a, user_b), (user_b, user_a)):
            unread = sum(1 for m in messages if m.receiver_id == user_id and not m.is_read)
            await self._conversations.save_summary(
                user_id,
                ConversationSummary(
                    conversation_key=key,
                    peer_id=peer_id,
                    last_message=preview_of(last),
                    last_message_time=last.timestamp,
                    last_sender_id=last.sender_id,
                    last_message_id=last.message_id,
                    unread_count=unread,
                ),
            )
        logger.info("Resynced summaries for %s", key)

    async def get_summary(self, user_id: str, peer_id: str) -> Optional[ConversationSummary]:
        return await self._conversations.get_summary(user_id, key_for(user_id, peer_id))

    async def list_for_user(self, user_id: str) -> List[ConversationSummary]:
        return await self._conversations.list_for_user(user_id)
