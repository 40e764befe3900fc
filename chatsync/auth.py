"""
Authentication context collaborator.

Sessions are issued elsewhere; the core only needs to know who is signed in
and to hear about sign-in / sign-out transitions.
"""

import asyncio
from dataclasses import dataclass
from typing import List, Optional

from chatsync.exceptions import UnauthorizedError


@dataclass(frozen=True)
class AuthTransition:

    user_id: str
    signed_in: bool


class TransitionStream:

    _CLOSED = object()

    def __init__(self, context: "AuthContext") -> None:
        self._context = context
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, item) -> None:
        self._queue.put_nowait(item)

    def close(self) -> None:
        self._context._detach(self)
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> AuthTransition:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item


class AuthContext:

    def __init__(self) -> None:
        self._user_id: Optional[str] = None
        self._streams: List[TransitionStream] = []

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def require_user_id(self) -> str:
        if self._user_id is None:
            raise UnauthorizedError("No signed-in user", error_code="NOT_SIGNED_IN")
        return self._user_id

    def transitions(self) -> TransitionStream:
        stream = TransitionStream(self)
        self._streams.append(stream)
        return stream

    def _detach(self, stream: TransitionStream) -> None:
        if stream in self._streams:
            self._streams.remove(stream)

    def _emit(self, transition: AuthTransition) -> None:
        for stream in list(self._streams):
            stream.push(transition)

    def sign_in(self, user_id: str) -> None:
        if self._user_id == user_id:
            return
        if self._user_id is not None:
            self.sign_out()
        self._user_id = user_id
        self._emit(AuthTransition(user_id, True))

    def sign_out(self) -> None:
        if self._user_id is None:
            return
        user_id, self._user_id = self._user_id, None
        self._emit(AuthTransition(user_id, False))

    def close(self) -> None:
        for stream in list(self._streams):
            stream.close()
