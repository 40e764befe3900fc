from enum import Enum
from typing import Any, Tuple

from pydantic import Field, field_validator

from chatsync.exceptions import ValidationError
from chatsync.models.base import Record


class MessageType(str, Enum):

    TEXT = "text"
    IMAGE = "image"


class Message(Record):

    message_id: str = ""
    sender_id: str = ""
    receiver_id: str = ""
    text: str = Field("", alias="message")
    image_url: str = ""
    timestamp: int = 0
    is_read: bool = False
    kind: MessageType = Field(MessageType.TEXT, alias="type")

    @field_validator("kind", mode="before")
    @classmethod
    def _default_kind(cls, value: Any) -> MessageType:
        try:
            return MessageType(value)
        except ValueError:
            return MessageType.TEXT

    @property
    def sort_key(self) -> Tuple[int, str]:
        return (self.timestamp, self.message_id)

    def validate_content(self) -> None:
        if self.kind is MessageType.TEXT and not self.text.strip():
            raise ValidationError("Message content cannot be empty", error_code="EMPTY_MESSAGE")
        if self.kind is MessageType.IMAGE and not self.image_url.strip():
            raise ValidationError("Image message needs an image reference", error_code="EMPTY_IMAGE")
