import logging
from dataclasses import dataclass
from typing import Optional

from redis.exceptions import RedisError

from chatsync.auth import AuthContext, TransitionStream
from chatsync.exceptions import NotFoundError
from chatsync.models.user import User
from chatsync.repositories.user_repository import UserRepository
from chatsync.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def status_text(user: User, now: int) -> str:
    """Human label for a user's presence at ``now`` (epoch ms).

    Units are floored, so exactly 60 minutes reads "1 hours ago".
    """
    if user.is_online:
        return "Online"
    elapsed = max(0, now - user.last_seen)
    if elapsed < MINUTE_MS:
        return "Just now"
    if elapsed < HOUR_MS:
        return f"{elapsed // MINUTE_MS} minutes ago"
    if elapsed < DAY_MS:
        return f"{elapsed // HOUR_MS} hours ago"
    return f"{elapsed // DAY_MS} days ago"


@dataclass
class Presence:

    user_id: str
    online: bool
    last_seen: int
    status_text: str


class PresenceTracker:

    def __init__(self, users: UserRepository, bus, clock: Clock = now_ms, ttl_seconds: int = 60) -> None:
        self._users = users
        self._bus = bus
        self._clock = clock
        self._ttl_seconds = ttl_seconds

    async def _require_user(self, user_id: str) -> User:
        user = await self._users.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND", details={"user_id": user_id})
        return user

    async def set_online(self, user_id: str) -> User:
        await self._require_user(user_id)
        user = await self._users.update_fields(user_id, {"isOnline": True, "lastSeen": self._clock()})
        await self.heartbeat(user_id)
        logger.info("%s is online", user_id)
        return user

    async def set_offline(self, user_id: str, last_seen: Optional[int] = None) -> User:
        await self._require_user(user_id)
        seen = self._clock() if last_seen is None else last_seen
        user = await self._users.update_fields(user_id, {"isOnline": False, "lastSeen": seen})
        try:
            await self._bus.clear_presence(user_id)
        except (RedisError, OSError) as exc:
            logger.warning("Could not clear presence key for %s: %s", user_id, exc)
        logger.info("%s is offline", user_id)
        return user

    async def heartbeat(self, user_id: str) -> None:
        try:
            await self._bus.set_presence(user_id, ttl_seconds=self._ttl_seconds)
        except (RedisError, OSError) as exc:
            logger.warning("Presence heartbeat failed for %s: %s", user_id, exc)

    async def is_online(self, user_id: str) -> bool:
        try:
            present = await self._bus.is_present(user_id)
        except (RedisError, OSError) as exc:
            logger.warning("Presence lookup failed for %s: %s", user_id, exc)
            present = None
        if present is not None:
            return present
        user = await self._users.get_user_by_id(user_id)
        return bool(user and user.is_online)

    async def get_presence(self, user_id: str) -> Presence:
        user = await self._require_user(user_id)
        return Presence(
            user_id=user_id,
            online=user.is_online,
            last_seen=user.last_seen,
            status_text=status_text(user, self._clock()),
        )

    def status_text(self, user: User, now: Optional[int] = None) -> str:
        return status_text(user, self._clock() if now is None else now)

    def track_auth(self, auth: AuthContext):
        """Coroutine following sign-in / sign-out until the auth context closes.

        The transition stream is attached right away, so transitions made
        before the coroutine first runs are not missed.
        """
        return self._follow(auth.transitions())

    async def _follow(self, transitions: TransitionStream) -> None:
        async for transition in transitions:
            try:
                if transition.signed_in:
                    await self.set_online(transition.user_id)
                else:
                    await self.set_offline(transition.user_id)
            except NotFoundError:
                logger.warning("Auth transition for unknown user %s", transition.user_id)
