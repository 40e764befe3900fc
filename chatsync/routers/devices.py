from fastapi import APIRouter, Depends

from chatsync.container import ChatCore
from chatsync.schemas.user import DeviceRegister
from chatsync.utils.dependencies import get_core, get_current_user


router = APIRouter(prefix="/devices", tags=["push"])


@router.post("/register")
async def register_device(body: DeviceRegister, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    device = await core.devices.register(user_id, body.platform, body.token, now=core.clock())
    return {"ok": True, "device": {"platform": device.platform, "token": device.token}}
