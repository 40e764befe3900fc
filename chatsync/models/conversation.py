from chatsync.models.base import Record


class ConversationSummary(Record):
    """One participant's view of a direct conversation."""

    conversation_key: str = ""
    peer_id: str = ""
    last_message: str = ""
    last_message_time: int = 0
    last_sender_id: str = ""
    last_message_id: str = ""
    unread_count: int = 0
