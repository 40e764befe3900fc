import hashlib
from typing import List, Optional

from chatsync.database.store import RemoteStore, join_path
from chatsync.models.device import Device, PushPlatform


class DeviceRepository:

    root = "devices"

    def __init__(self, store: RemoteStore) -> None:
        self._store = store

    @staticmethod
    def device_id(token: str) -> str:
        return hashlib.sha1(token.encode("utf-8")).hexdigest()

    async def register(self, user_id: str, platform: PushPlatform, token: str, now: int) -> Device:
        device = Device(device_id=self.device_id(token), platform=platform, token=token, last_seen_at=now)
        await self._store.write(join_path(self.root, user_id, device.device_id), device.to_record())
        return device

    async def get_tokens(self, user_id: str, platform: Optional[str] = None) -> List[Device]:
        items = await self._store.children(join_path(self.root, user_id))
        devices = [Device.from_record(raw, device_id=key) for key, raw in items.items()]
        if platform:
            devices = [d for d in devices if d.platform == platform]
        return devices
