from typing import Literal

from chatsync.models.base import Record

PushPlatform = Literal["fcm", "webpush"]


class Device(Record):

    device_id: str = ""
    platform: PushPlatform = "fcm"
    token: str = ""
    last_seen_at: int = 0
