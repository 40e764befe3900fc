import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Query, Request, WebSocket, WebSocketDisconnect

from chatsync.container import ChatCore
from chatsync.exceptions import ChatError
from chatsync.models.message import Message
from chatsync.schemas.chat import MarkRead, SendImage, SendMessage
from chatsync.utils.dependencies import get_core, get_current_user, socket_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])

HEARTBEAT_SECONDS = 30


def message_frame(message: Message) -> dict:
    return {"type": "message", "message": message.to_record()}


@router.post("")
async def send_message(body: SendMessage, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    message = await core.chat.send_message(user_id, body.to, body.content)
    return {"message": message.to_record()}


@router.post("/image")
async def send_image(body: SendImage, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    message = await core.chat.send_image(user_id, body.to, image_url=body.image_url)
    return {"message": message.to_record()}


@router.post("/image/upload")
async def upload_image(
    request: Request,
    to: str = Query(...),
    filename: str = Query("image.jpg"),
    user_id: str = Depends(get_current_user),
    core: ChatCore = Depends(get_core),
):
    data = await request.body()
    message = await core.chat.send_image(user_id, to, image_bytes=data, filename=filename)
    return {"message": message.to_record()}


@router.post("/mark_read")
async def mark_read(body: MarkRead, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    count = await core.chat.mark_read(user_id, body.peer_id, body.up_to_message_id)
    return {"updated": count}


@router.get("/unread/{peer_id}")
async def get_unread(peer_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    return {"count": await core.chat.unread_count(user_id, peer_id)}


@router.get("/{peer_id}")
async def get_history(peer_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    messages = await core.chat.get_history(user_id, peer_id)
    return {"messages": [m.to_record() for m in messages]}


@router.websocket("/ws/{peer_id}")
async def chat_socket(websocket: WebSocket, peer_id: str):
    """Stream one conversation: history first, then live messages.

    Clients may send ``{"type": "message", "content": ...}`` and
    ``{"type": "seen", "message_id": ...}`` frames over the same socket.
    """
    user_id = socket_user(websocket)
    if not user_id:
        await websocket.close(code=4401)
        return
    core: ChatCore = websocket.app.state.core
    manager = websocket.app.state.connections
    try:
        subscription = await core.chat.subscribe(user_id, peer_id)
    except ChatError as exc:
        logger.info("Refusing chat socket %s -> %s: %s", user_id, peer_id, exc)
        await websocket.close(code=4403)
        return

    if await manager.connect(user_id, websocket):
        await core.presence.set_online(user_id)

    async def heartbeat() -> None:
        while True:
            await asyncio.sleep(HEARTBEAT_SECONDS)
            await core.presence.heartbeat(user_id)

    forward_task = manager.forward(websocket, subscription, message_frame)
    heartbeat_task = asyncio.create_task(heartbeat())
    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                await manager.send_json(websocket, {"type": "error", "error": "INVALID_JSON"})
                continue
            if not isinstance(frame, dict):
                frame = {}
            try:
                if frame.get("type") == "seen" and frame.get("message_id"):
                    count = await core.chat.mark_read(user_id, peer_id, frame["message_id"])
                    await manager.send_json(websocket, {"type": "seen", "updated": count})
                elif frame.get("type") == "message":
                    await core.chat.send_message(user_id, peer_id, frame.get("content", ""))
                else:
                    await manager.send_json(websocket, {"type": "error", "error": "UNKNOWN_FRAME"})
            except ChatError as exc:
                await manager.send_json(websocket, {"type": "error", **exc.to_dict()})
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()
        heartbeat_task.cancel()
        forward_task.cancel()
        if manager.disconnect(user_id, websocket):
            await core.presence.set_offline(user_id)
