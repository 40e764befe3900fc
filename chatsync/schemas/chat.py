from typing import List, Optional

from pydantic import BaseModel, Field


class SendMessage(BaseModel):

    to: str
    content: str


class SendImage(BaseModel):

    to: str
    image_url: str


class MarkRead(BaseModel):

    peer_id: str
    up_to_message_id: str


class GroupCreate(BaseModel):

    name: str
    description: str = ""
    member_ids: List[str] = Field(default_factory=list)
    image: str = ""


class GroupMember(BaseModel):

    user_id: str


class GroupMessage(BaseModel):

    content: str = ""
    image_url: Optional[str] = None
