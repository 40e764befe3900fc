from typing import List, Optional

from chatsync.database.store import RemoteStore, join_path
from chatsync.models.conversation import ConversationSummary


class ConversationRepository:
    """Per-participant summaries under ``conversations/{uid}/{key}``."""

    root = "conversations"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    def path(self, user_id: str, conversation_key: str) -> str:
        return join_path(self.root, user_id, conversation_key)

    async def get_summary(self, user_id: str, conversation_key: str) -> Optional[ConversationSummary]:
        raw = await self._store.read(self.path(user_id, conversation_key))
        if raw is None:
            return None
        return ConversationSummary.from_record(raw, conversation_key=conversation_key)

    async def save_summary(self, user_id: str, summary: ConversationSummary) -> None:
        await self._store.write(self.path(user_id, summary.conversation_key), summary.to_record())

    async def reset_unread(self, user_id: str, conversation_key: str, count: int = 0) -> None:
        await self._store.update(self.path(user_id, conversation_key), {"unreadCount": count})

    async def list_for_user(self, user_id: str) -> List[ConversationSummary]:
        items = await self._store.children(join_path(self.root, user_id))
        summaries = [ConversationSummary.from_record(raw, conversation_key=key) for key, raw in items.items()]
        summaries.sort(key=lambda s: (s.last_message_time, s.conversation_key), reverse=True)
        return summaries
