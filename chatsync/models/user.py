import logging
from typing import Any, List, Set

from pydantic import Field, field_serializer, field_validator

from chatsync.models.base import Record

logger = logging.getLogger(__name__)


class User(Record):

    uid: str = ""
    email: str = ""
    display_name: str = ""
    description: str = ""
    is_online: bool = False
    last_seen: int = 0
    friends: Set[str] = Field(default_factory=set)

    @field_validator("friends", mode="before")
    @classmethod
    def _normalize_friends(cls, value: Any) -> Set[str]:
        # stored either as a list of ids or as push-key -> id pairs
        if isinstance(value, dict):
            items = value.values()
        elif isinstance(value, (list, tuple, set)):
            items = value
        else:
            logger.warning("Unrecognized friends shape %s, treating as empty", type(value).__name__)
            return set()
        return {item for item in items if isinstance(item, str) and item}

    @field_serializer("friends")
    def _serialize_friends(self, friends: Set[str]) -> List[str]:
        return sorted(friends)
