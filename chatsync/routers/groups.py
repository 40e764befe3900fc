import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from chatsync.container import ChatCore
from chatsync.exceptions import ChatError
from chatsync.models.group import Group
from chatsync.routers.chat import message_frame
from chatsync.routers.users import public_profile
from chatsync.schemas.chat import GroupCreate, GroupMember, GroupMessage
from chatsync.utils.dependencies import get_core, get_current_user, socket_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/groups", tags=["group"])


def group_record(group: Group) -> dict:
    record = group.to_record()
    record["memberCount"] = group.member_count
    return record


@router.post("")
async def create_group(body: GroupCreate, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.create_group(user_id, body.name, body.description, body.member_ids, body.image)
    return {"group": group_record(group)}


@router.get("")
async def list_groups(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    groups = await core.groups.list_for_user(user_id)
    return {"groups": [group_record(g) for g in groups]}


@router.get("/{group_id}")
async def get_group(group_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.view_group(group_id, user_id)
    return {"group": group_record(group)}


@router.delete("/{group_id}")
async def deactivate_group(group_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.deactivate_group(group_id, user_id)
    return {"group": group_record(group)}


@router.post("/{group_id}/members")
async def add_member(group_id: str, body: GroupMember, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.add_member(group_id, user_id, body.user_id)
    return {"group": group_record(group)}


@router.delete("/{group_id}/members/{member_id}")
async def remove_member(group_id: str, member_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.remove_member(group_id, user_id, member_id)
    return {"group": group_record(group)}


@router.post("/{group_id}/leave")
async def leave_group(group_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.leave_group(group_id, user_id)
    return {"group": group_record(group)}


@router.post("/{group_id}/admins")
async def promote_admin(group_id: str, body: GroupMember, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    group = await core.groups.promote_admin(group_id, user_id, body.user_id)
    return {"group": group_record(group)}


@router.post("/{group_id}/messages")
async def send_group_message(group_id: str, body: GroupMessage, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    message = await core.groups.send_group_message(group_id, user_id, text=body.content, image_url=body.image_url or "")
    return {"message": message.to_record()}


@router.get("/{group_id}/messages")
async def group_messages(group_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    messages = await core.groups.get_messages(group_id, user_id)
    return {"messages": [m.to_record() for m in messages]}


@router.get("/{group_id}/members")
async def group_members(group_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    members = await core.groups.get_members(group_id, user_id)
    return {"members": [public_profile(core, m) for m in members]}


@router.websocket("/ws/{group_id}")
async def group_socket(websocket: WebSocket, group_id: str):
    """Stream a group's messages: history first, then live. Members may post
    ``{"type": "message", "content": ..., "image_url": ...}`` frames."""
    user_id = socket_user(websocket)
    if not user_id:
        await websocket.close(code=4401)
        return
    core: ChatCore = websocket.app.state.core
    manager = websocket.app.state.connections
    try:
        subscription = await core.groups.subscribe(group_id, user_id)
    except ChatError as exc:
        logger.info("Refusing group socket %s -> %s: %s", user_id, group_id, exc)
        await websocket.close(code=4403)
        return

    if await manager.connect(user_id, websocket):
        await core.presence.set_online(user_id)
    forward_task = manager.forward(websocket, subscription, message_frame)
    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                await manager.send_json(websocket, {"type": "error", "error": "INVALID_JSON"})
                continue
            if not isinstance(frame, dict) or frame.get("type") != "message":
                await manager.send_json(websocket, {"type": "error", "error": "UNKNOWN_FRAME"})
                continue
            try:
                await core.groups.send_group_message(
                    group_id, user_id, text=frame.get("content", ""), image_url=frame.get("image_url") or ""
                )
            except ChatError as exc:
                await manager.send_json(websocket, {"type": "error", **exc.to_dict()})
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()
        forward_task.cancel()
        if manager.disconnect(user_id, websocket):
            await core.presence.set_offline(user_id)
