from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):

    email: EmailStr
    display_name: str = Field(min_length=1)
    description: str = ""


class ProfileUpdate(BaseModel):

    display_name: str = Field(min_length=1)
    description: Optional[str] = None


class AddFriendByEmail(BaseModel):

    email: EmailStr


class OfflineRequest(BaseModel):

    last_seen: Optional[int] = None


class DeviceRegister(BaseModel):

    platform: str = Field(pattern="^(fcm|webpush)$")
    token: str = Field(min_length=1)
