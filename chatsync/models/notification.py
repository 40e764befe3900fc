from enum import Enum
from typing import Any, Dict, Tuple

from pydantic import Field

from chatsync.models.base import Record


class NotificationType(str, Enum):

    MESSAGE = "message"
    FRIEND_REQUEST = "friend_request"
    FRIEND_ADDED = "friend_added"


_PRESENTATION: Dict[str, Tuple[str, str]] = {
    NotificationType.FRIEND_ADDED.value: ("👥", "green"),
    NotificationType.MESSAGE.value: ("💬", "blue"),
    NotificationType.FRIEND_REQUEST.value: ("🤝", "orange"),
}
DEFAULT_PRESENTATION = ("🔔", "gray")


def presentation(notification_type: str) -> Tuple[str, str]:
    """(icon, color) for a notification type; unknown types get the bell."""
    if not isinstance(notification_type, str):
        return DEFAULT_PRESENTATION
    return _PRESENTATION.get(notification_type, DEFAULT_PRESENTATION)


class Notification(Record):

    id: str = ""
    user_id: str = ""
    from_user_id: str = ""
    from_user_name: str = ""
    # kept as a plain string so unknown types survive a round trip
    type: str = ""
    title: str = ""
    message: str = ""
    timestamp: int = 0
    is_read: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def icon(self) -> str:
        return presentation(self.type)[0]

    @property
    def color(self) -> str:
        return presentation(self.type)[1]
