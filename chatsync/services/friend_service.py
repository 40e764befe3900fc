import logging
from typing import List, Tuple

from chatsync.exceptions import (
    AlreadyFriendsError,
    ChatError,
    ConflictError,
    NotFoundError,
    NotFriendsError,
    UnauthorizedError,
    ValidationError,
)
from chatsync.models.friend_request import FriendRequest
from chatsync.models.notification import NotificationType
from chatsync.models.user import User
from chatsync.repositories.friend_repository import FriendRepository
from chatsync.repositories.user_repository import UserRepository
from chatsync.services.notification_service import NotificationDispatcher
from chatsync.utils.clock import Clock, now_ms

logger = logging.getLogger(__name__)


class FriendService:
    """Mutual friend lists, kept symmetric on every change."""

    def __init__(
        self,
        friend_repo: FriendRepository,
        user_repo: UserRepository,
        notifications: NotificationDispatcher,
        clock: Clock = now_ms,
    ) -> None:
        self.friend_repo = friend_repo
        self.user_repo = user_repo
        self.notifications = notifications
        self._clock = clock

    async def _require_user(self, user_id: str) -> User:
        user = await self.user_repo.get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND", details={"user_id": user_id})
        return user

    async def _pair(self, a: str, b: str) -> Tuple[User, User]:
        if a == b:
            raise ValidationError("Cannot befriend yourself", error_code="SELF_FRIEND")
        return await self._require_user(a), await self._require_user(b)

    async def are_friends(self, a: str, b: str) -> bool:
        if a == b:
            return False
        ua = await self.user_repo.get_user_by_id(a)
        ub = await self.user_repo.get_user_by_id(b)
        if ua is None or ub is None:
            return False
        # both sides must agree; a half-written link counts as no link
        return b in ua.friends and a in ub.friends

    async def ensure_can_message(self, a: str, b: str) -> None:
        if not await self.are_friends(a, b):
            raise UnauthorizedError(
                "Only friends can message each other",
                error_code="NOT_FRIENDS",
                details={"sender_id": a, "receiver_id": b},
            )

    async def _link(self, ua: User, ub: User, linked: bool) -> None:
        a_friends = ua.friends | {ub.uid} if linked else ua.friends - {ub.uid}
        b_friends = ub.friends | {ua.uid} if linked else ub.friends - {ua.uid}
        await self.user_repo.set_friends(ua.uid, a_friends)
        try:
            await self.user_repo.set_friends(ub.uid, b_friends)
        except ChatError:
            logger.warning("Rolling back friend change on %s after failure on %s", ua.uid, ub.uid)
            await self.user_repo.set_friends(ua.uid, ua.friends)
            raise

    async def add_friend(self, a: str, b: str) -> None:
        ua, ub = await self._pair(a, b)
        if b in ua.friends and a in ub.friends:
            raise AlreadyFriendsError(f"Already friends with {ub.display_name or b}", details={"friend_id": b})
        await self._link(ua, ub, linked=True)
        logger.info("%s and %s are now friends", a, b)
        try:
            await self._after_link(ua, b)
        except ChatError as exc:
            # the link is in place, so the add still succeeds
            logger.warning("Follow-up after linking %s and %s failed: %s", a, b, exc)

    async def _after_link(self, ua: User, b: str) -> None:
        a = ua.uid
        for from_user, to_user in ((a, b), (b, a)):
            if await self.friend_repo.get_friend_request(from_user, to_user) is not None:
                await self.friend_repo.delete_friend_request(from_user, to_user)
        await self.notifications.emit(
            NotificationType.FRIEND_ADDED,
            target_user_id=b,
            origin_user_id=a,
            origin_display_name=ua.display_name or "Someone",
            payload={"friendId": a, "friendName": ua.display_name},
        )

    async def add_friend_by_email(self, a: str, email: str) -> User:
        ua = await self._require_user(a)
        if ua.email and ua.email.lower() == email.strip().lower():
            raise ValidationError("Cannot befriend yourself", error_code="SELF_FRIEND")
        friend = await self.user_repo.get_user_by_email(email)
        if friend is None:
            raise NotFoundError("No user with that email", error_code="USER_NOT_FOUND", details={"email": email})
        await self.add_friend(a, friend.uid)
        return friend

    async def remove_friend(self, a: str, b: str) -> None:
        ua, ub = await self._pair(a, b)
        if b not in ua.friends and a not in ub.friends:
            raise NotFriendsError("Friend relation not found", details={"friend_id": b})
        await self._link(ua, ub, linked=False)
        logger.info("%s and %s are no longer friends", a, b)

    async def list_friends(self, user_id: str) -> List[User]:
        user = await self._require_user(user_id)
        friends = []
        for friend_id in sorted(user.friends):
            friend = await self.user_repo.get_user_by_id(friend_id)
            if friend is not None and user_id in friend.friends:
                friends.append(friend)
        return friends

    async def send_friend_request(self, from_user: str, to_user: str) -> FriendRequest:
        requester, _ = await self._pair(from_user, to_user)
        if await self.are_friends(from_user, to_user):
            raise AlreadyFriendsError("Already friends", details={"friend_id": to_user})
        if await self.friend_repo.get_friend_request(from_user, to_user) is not None:
            raise ConflictError("Friend request already sent", error_code="REQUEST_PENDING")
        request = await self.friend_repo.create_friend_request(
            FriendRequest(from_user_id=from_user, to_user_id=to_user, created_at=self._clock())
        )
        await self.notifications.emit(
            NotificationType.FRIEND_REQUEST,
            target_user_id=to_user,
            origin_user_id=from_user,
            origin_display_name=requester.display_name or "Someone",
            payload={"fromUserId": from_user},
        )
        return request

    async def accept_friend_request(self, from_user: str, to_user: str) -> None:
        request = await self.friend_repo.get_friend_request(from_user, to_user)
        if request is None or request.status != "pending":
            raise NotFoundError("No pending request to accept", error_code="REQUEST_NOT_FOUND")
        # the accepting side adds; the requester hears about it
        await self.add_friend(to_user, from_user)

    async def cancel_friend_request(self, from_user: str, to_user: str) -> None:
        if await self.friend_repo.get_friend_request(from_user, to_user) is None:
            raise NotFoundError("No such request", error_code="REQUEST_NOT_FOUND")
        await self.friend_repo.delete_friend_request(from_user, to_user)

    async def get_received_requests(self, user_id: str) -> List[FriendRequest]:
        return await self.friend_repo.list_received_requests(user_id)
