from typing import Optional

from chatsync.exceptions import ConflictError, NotFoundError, ValidationError
from chatsync.models.user import User
from chatsync.repositories.user_repository import UserRepository
from chatsync.services.conversation_indexer import KEY_SEPARATOR
from chatsync.utils.clock import Clock, now_ms


class UserService:

    def __init__(self, user_repository: UserRepository, clock: Clock = now_ms) -> None:
        self.user_repository = user_repository
        self._clock = clock

    async def register_user(self, uid: str, email: str, display_name: str, description: str = "") -> User:
        """
        Create the profile record for an account the auth provider issued.
        New users start online with an empty friend list.
        """
        if not uid or "/" in uid or KEY_SEPARATOR in uid:
            raise ValidationError(f"Invalid user id: {uid!r}", error_code="INVALID_USER_ID")
        if not display_name or not display_name.strip():
            raise ValidationError("Display name is required", error_code="DISPLAY_NAME_REQUIRED")
        if await self.user_repository.get_user_by_id(uid) is not None:
            raise ConflictError("User already registered", error_code="USER_EXISTS")
        if await self.user_repository.get_user_by_email(email) is not None:
            raise ConflictError("Email already registered", error_code="EMAIL_DUPLICATE")
        user = User(
            uid=uid,
            email=email,
            display_name=display_name.strip(),
            description=description,
            is_online=True,
            last_seen=self._clock(),
        )
        return await self.user_repository.create_user(user)

    async def get_user(self, uid: str) -> User:
        user = await self.user_repository.get_user_by_id(uid)
        if user is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND", details={"user_id": uid})
        return user

    async def find_by_email(self, email: str) -> Optional[User]:
        return await self.user_repository.get_user_by_email(email)

    async def update_profile(self, uid: str, display_name: str, description: Optional[str] = None) -> User:
        await self.get_user(uid)
        if not display_name or not display_name.strip():
            raise ValidationError("Display name is required", error_code="DISPLAY_NAME_REQUIRED")
        fields = {"displayName": display_name.strip(), "lastSeen": self._clock()}
        if description is not None:
            fields["description"] = description
        return await self.user_repository.update_fields(uid, fields)
