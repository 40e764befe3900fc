import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect

from chatsync.container import ChatCore
from chatsync.exceptions import ChatError
from chatsync.models.notification import Notification
from chatsync.utils.dependencies import get_core, get_current_user, socket_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notification"])


def _present(notification: Notification) -> dict:
    record = notification.to_record()
    record["icon"] = notification.icon
    record["color"] = notification.color
    return record


@router.get("")
async def notification_feed(limit: int = Query(50, ge=1, le=200), user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    items = await core.notifications.feed(user_id, limit=limit)
    return {"items": [_present(n) for n in items], "unread": await core.notifications.unread_count(user_id)}


@router.post("/read_all")
async def mark_all_read(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    return {"updated": await core.notifications.mark_all_read(user_id)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    notification = await core.notifications.mark_read(user_id, notification_id)
    return {"notification": _present(notification)}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.notifications.delete(user_id, notification_id)
    return {"msg": "Deleted"}


@router.delete("")
async def clear_notifications(user_id: str = Depends(get_current_user), core: ChatCore = Depends(get_core)):
    await core.notifications.clear(user_id)
    return {"msg": "Cleared"}


@router.websocket("/ws")
async def notification_socket(websocket: WebSocket):
    """Push each new notification as it is written to the user's feed.

    ``{"type": "read", "id": ...}`` frames mark a notification read.
    """
    user_id = socket_user(websocket)
    if not user_id:
        await websocket.close(code=4401)
        return
    core: ChatCore = websocket.app.state.core
    manager = websocket.app.state.connections
    try:
        await core.users.get_user(user_id)
        subscription = await core.notifications.subscribe(user_id)
    except ChatError as exc:
        logger.info("Refusing notification socket for %s: %s", user_id, exc)
        await websocket.close(code=4403)
        return

    if await manager.connect(user_id, websocket):
        await core.presence.set_online(user_id)
    forward_task = manager.forward(
        websocket,
        subscription,
        lambda n: {"type": "notification", "notification": _present(n)},
    )
    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                await manager.send_json(websocket, {"type": "error", "error": "INVALID_JSON"})
                continue
            if not isinstance(frame, dict) or frame.get("type") != "read" or not frame.get("id"):
                await manager.send_json(websocket, {"type": "error", "error": "UNKNOWN_FRAME"})
                continue
            try:
                notification = await core.notifications.mark_read(user_id, frame["id"])
            except ChatError as exc:
                await manager.send_json(websocket, {"type": "error", **exc.to_dict()})
                continue
            await manager.send_json(
                websocket,
                {"type": "read", "notification": _present(notification), "unread": await core.notifications.unread_count(user_id)},
            )
    except WebSocketDisconnect:
        pass
    finally:
        subscription.cancel()
        forward_task.cancel()
        if manager.disconnect(user_id, websocket):
            await core.presence.set_offline(user_id)
