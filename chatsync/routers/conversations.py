from fastapi import APIRouter, Depends

from chatsync.container import ChatCore
from chatsync.utils.dependencies import get_core, get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("")
async def list_conversations(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    items = await core.chat.list_conversations(user_id)
    return {"items": [s.to_record() for s in items]}


@router.get("/{peer_id}")
async def get_conversation(peer_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    key = await core.chat.open_conversation(user_id, peer_id)
    summary = await core.indexer.get_summary(user_id, peer_id)
    return {"conversation_key": key, "summary": summary.to_record() if summary else None}


@router.get("/{peer_id}/messages")
async def list_messages(peer_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    messages = await core.chat.get_history(user_id, peer_id)
    return {"items": [m.to_record() for m in messages]}


@router.post("/{peer_id}/resync")
async def resync(peer_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.chat.resync(user_id, peer_id)
    summary = await core.indexer.get_summary(user_id, peer_id)
    return {"summary": summary.to_record() if summary else None}
