from typing import List

from pydantic import Field, model_validator

from chatsync.models.base import Record


class Group(Record):

    group_id: str = ""
    group_name: str = ""
    group_description: str = ""
    group_image: str = ""
    created_by: str = ""
    created_at: int = 0
    members: List[str] = Field(default_factory=list)
    admins: List[str] = Field(default_factory=list)
    is_active: bool = True
    last_message: str = ""
    last_message_time: int = 0
    last_message_sender_id: str = ""

    @model_validator(mode="after")
    def _admins_are_members(self) -> "Group":
        # admins outside the member list are dropped on read
        self.admins = [a for a in self.admins if a in self.members]
        return self

    def is_admin(self, user_id: str) -> bool:
        return user_id in self.admins

    def is_member(self, user_id: str) -> bool:
        return user_id in self.members

    @property
    def member_count(self) -> int:
        return len(self.members)
