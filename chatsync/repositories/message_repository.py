from typing import Iterable, List, Optional

from chatsync.database.store import RemoteStore, StoreSubscription, join_path
from chatsync.models.message import Message


class MessageRepository:
    """Message logs under ``{root}/{conversation}/{message_id}``."""

    def __init__(self, store: RemoteStore, root: str = "messages") -> None:
        self._store = store
        self.root = root

    def path(self, conversation_key: str, message_id: Optional[str] = None) -> str:
        if message_id is None:
            return join_path(self.root, conversation_key)
        return join_path(self.root, conversation_key, message_id)

    async def save_message(self, conversation_key: str, message: Message) -> Message:
        await self._store.write(self.path(conversation_key, message.message_id), message.to_record())
        return message

    async def get_message(self, conversation_key: str, message_id: str) -> Optional[Message]:
        raw = await self._store.read(self.path(conversation_key, message_id))
        if raw is None:
            return None
        return Message.from_record(raw, message_id=message_id)

    async def get_messages_by_conversation(self, conversation_key: str) -> List[Message]:
        items = await self._store.children(self.path(conversation_key))
        messages = [Message.from_record(raw, message_id=key) for key, raw in items.items()]
        messages.sort(key=lambda m: m.sort_key)
        return messages

    async def mark_read(self, conversation_key: str, message_ids: Iterable[str]) -> int:
        count = 0
        for message_id in message_ids:
            await self._store.update(self.path(conversation_key, message_id), {"isRead": True})
            count += 1
        return count

    def subscribe(self, conversation_key: str) -> StoreSubscription:
        return self._store.subscribe(self.path(conversation_key))
