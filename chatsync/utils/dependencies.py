from typing import Optional

from fastapi import Header, HTTPException, Request, WebSocket, status

from chatsync.container import ChatCore


def get_core(request: Request) -> ChatCore:
    return request.app.state.core


async def get_current_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    # the upstream auth gateway sets this header after verifying the session
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return x_user_id



def socket_user(websocket: WebSocket) -> Optional[str]:
    # header first, then the ``user_id`` query param browsers can set
    return websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")
