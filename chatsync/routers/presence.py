from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends

from chatsync.container import ChatCore
from chatsync.schemas.user import OfflineRequest
from chatsync.utils.dependencies import get_core, get_current_user


router = APIRouter(prefix="/presence", tags=["chat"])


@router.get("/{user_id}")
async def presence(user_id: str, core: ChatCore = Depends(get_core)):
    """Online flag, last-seen time and the human status label for a user."""
    return asdict(await core.presence.get_presence(user_id))


@router.post("/online")
async def go_online(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.presence.set_online(user_id)
    return asdict(await core.presence.get_presence(user_id))


@router.post("/offline")
async def go_offline(body: Optional[OfflineRequest] = None, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.presence.set_offline(user_id, last_seen=body.last_seen if body else None)
    return asdict(await core.presence.get_presence(user_id))


@router.post("/heartbeat")
async def heartbeat(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.presence.heartbeat(user_id)
    return {"ok": True}
