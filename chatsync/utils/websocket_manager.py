import asyncio
import json
import logging
from typing import Any, Callable, Dict, List, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

logger = logging.getLogger(__name__)

# close code sent when a socket's stream task fails
CLOSE_STREAM_FAILED = 1011


class ConnectionManager:
    """Open sockets per user. A user counts as connected while any socket is open."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._closing: Set[asyncio.Task] = set()

    async def connect(self, user_id: str, websocket: WebSocket) -> bool:
        """Accept the socket; True when it is the user's first open socket."""
        await websocket.accept()
        first = user_id not in self.active_connections
        self.active_connections.setdefault(user_id, []).append(websocket)
        return first

    def disconnect(self, user_id: str, websocket: WebSocket) -> bool:
        """Forget the socket; True when the user has no sockets left."""
        sockets = self.active_connections.get(user_id)
        if sockets is None:
            return False
        if websocket in sockets:
            sockets.remove(websocket)
        if sockets:
            return False
        del self.active_connections[user_id]
        return True

    async def send_json(self, websocket: WebSocket, payload: Dict[str, Any]) -> None:
        if websocket.application_state == WebSocketState.CONNECTED:
            await websocket.send_text(json.dumps(payload))

    def forward(self, websocket: WebSocket, subscription, render: Callable[[Any], Dict[str, Any]]) -> asyncio.Task:
        """Stream ``subscription`` into the socket as ``render(record)`` frames.

        If streaming fails the error is logged and the socket is closed with
        ``CLOSE_STREAM_FAILED``.
        """

        async def send(record: Any) -> None:
            await self.send_json(websocket, render(record))

        task = asyncio.create_task(subscription.run(send))
        task.add_done_callback(lambda done: self._forward_done(websocket, done))
        return task

    def _forward_done(self, websocket: WebSocket, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        logger.warning("Closing socket after stream failure: %r", task.exception())
        closing = asyncio.ensure_future(self._close(websocket, CLOSE_STREAM_FAILED))
        self._closing.add(closing)
        closing.add_done_callback(self._closing.discard)

    async def _close(self, websocket: WebSocket, code: int) -> None:
        if websocket.application_state != WebSocketState.CONNECTED:
            return
        try:
            await websocket.close(code=code)
        except (RuntimeError, OSError) as exc:
            logger.debug("Socket already gone: %s", exc)
