import logging
from typing import Iterable, List

from chatsync.exceptions import ConflictError, NotFoundError, UnauthorizedError, ValidationError
from chatsync.models.group import Group
from chatsync.models.user import User
from chatsync.models.message import Message, MessageType
from chatsync.repositories.group_repository import GroupRepository
from chatsync.repositories.user_repository import UserRepository
from chatsync.services.conversation_indexer import preview_of
from chatsync.services.message_store import MessageStore, MessageSubscription
from chatsync.utils.clock import Clock, now_ms
from chatsync.utils.ids import new_id

logger = logging.getLogger(__name__)


class GroupService:

    def __init__(self, groups: GroupRepository, messages: MessageStore, users: UserRepository, clock: Clock = now_ms) -> None:
        self._groups = groups
        self._messages = messages
        self._users = users
        self._clock = clock

    async def _require_user(self, user_id: str) -> None:
        if await self._users.get_user_by_id(user_id) is None:
            raise NotFoundError("User not found", error_code="USER_NOT_FOUND", details={"user_id": user_id})

    async def get_group(self, group_id: str) -> Group:
        group = await self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found", error_code="GROUP_NOT_FOUND", details={"group_id": group_id})
        return group

    async def view_group(self, group_id: str, user_id: str) -> Group:
        group = await self.get_group(group_id)
        self._require_member(group, user_id)
        return group

    async def _active_group(self, group_id: str) -> Group:
        group = await self.get_group(group_id)
        if not group.is_active:
            raise ValidationError("Group is no longer active", error_code="GROUP_INACTIVE", details={"group_id": group_id})
        return group

    @staticmethod
    def _require_admin(group: Group, actor_id: str) -> None:
        if not group.is_admin(actor_id):
            raise UnauthorizedError("Only group admins can do that", error_code="NOT_GROUP_ADMIN")

    @staticmethod
    def _require_member(group: Group, user_id: str) -> None:
        if not group.is_member(user_id):
            raise UnauthorizedError("Not a member of this group", error_code="NOT_GROUP_MEMBER")

    async def create_group(
        self,
        creator_id: str,
        name: str,
        description: str = "",
        member_ids: Iterable[str] = (),
        image: str = "",
    ) -> Group:
        if not name or not name.strip():
            raise ValidationError("Group name is required", error_code="GROUP_NAME_REQUIRED")
        await self._require_user(creator_id)
        members = [creator_id]
        for member_id in member_ids:
            if member_id not in members:
                await self._require_user(member_id)
                members.append(member_id)
        now = self._clock()
        group = Group(
            group_id=new_id(),
            group_name=name.strip(),
            group_description=description,
            group_image=image,
            created_by=creator_id,
            created_at=now,
            members=members,
            admins=[creator_id],
            last_message_time=now,
        )
        await self._groups.save_group(group)
        logger.info("Group %s created by %s with %d members", group.group_id, creator_id, len(members))
        return group

    async def add_member(self, group_id: str, actor_id: str, user_id: str) -> Group:
        group = await self._active_group(group_id)
        self._require_admin(group, actor_id)
        await self._require_user(user_id)
        if group.is_member(user_id):
            raise ConflictError("Already a member", error_code="ALREADY_MEMBER")
        return await self._groups.update_group(group_id, {"members": group.members + [user_id]})

    async def remove_member(self, group_id: str, actor_id: str, user_id: str) -> Group:
        group = await self._active_group(group_id)
        if actor_id != user_id:
            self._require_admin(group, actor_id)
        if not group.is_member(user_id):
            raise NotFoundError("Not a member of this group", error_code="MEMBER_NOT_FOUND")
        members = [m for m in group.members if m != user_id]
        admins = [a for a in group.admins if a != user_id]
        if members and not admins:
            raise ConflictError("The last admin cannot leave while members remain", error_code="LAST_ADMIN")
        fields = {"members": members, "admins": admins}
        if not members:
            fields["isActive"] = False
        logger.info("%s removed %s from group %s", actor_id, user_id, group_id)
        return await self._groups.update_group(group_id, fields)

    async def leave_group(self, group_id: str, user_id: str) -> Group:
        return await self.remove_member(group_id, user_id, user_id)

    async def promote_admin(self, group_id: str, actor_id: str, user_id: str) -> Group:
        group = await self._active_group(group_id)
        self._require_admin(group, actor_id)
        if not group.is_member(user_id):
            raise NotFoundError("Not a member of this group", error_code="MEMBER_NOT_FOUND")
        if group.is_admin(user_id):
            raise ConflictError("Already an admin", error_code="ALREADY_ADMIN")
        return await self._groups.update_group(group_id, {"admins": group.admins + [user_id]})

    async def deactivate_group(self, group_id: str, actor_id: str) -> Group:
        group = await self.get_group(group_id)
        if group.created_by != actor_id:
            raise UnauthorizedError("Only the group creator can close the group", error_code="NOT_GROUP_CREATOR")
        if not group.is_active:
            return group
        logger.info("Group %s deactivated by %s", group_id, actor_id)
        return await self._groups.update_group(group_id, {"isActive": False})

    async def send_group_message(self, group_id: str, sender_id: str, text: str = "", image_url: str = "") -> Message:
        kind = MessageType.IMAGE if image_url else MessageType.TEXT
        message = Message(sender_id=sender_id, receiver_id=group_id, text=text, image_url=image_url, kind=kind)
        message.validate_content()
        group = await self._active_group(group_id)
        self._require_member(group, sender_id)
        stored = await self._messages.append_message(group_id, message)
        await self._groups.update_group(
            group_id,
            {
                "lastMessage": preview_of(stored),
                "lastMessageTime": stored.timestamp,
                "lastMessageSenderId": sender_id,
            },
        )
        return stored

    async def get_messages(self, group_id: str, user_id: str) -> List[Message]:
        group = await self.get_group(group_id)
        self._require_member(group, user_id)
        return await self._messages.history(group_id)

    async def get_members(self, group_id: str, user_id: str) -> List[User]:
        group = await self.view_group(group_id, user_id)
        members = []
        for member_id in group.members:
            user = await self._users.get_user_by_id(member_id)
            # accounts deleted after joining are left out
            if user is not None:
                members.append(user)
        return members

    async def subscribe(self, group_id: str, user_id: str) -> MessageSubscription:
        group = await self._active_group(group_id)
        self._require_member(group, user_id)
        return self._messages.subscribe(group_id)

    async def list_for_user(self, user_id: str) -> List[Group]:
        groups = [g for g in await self._groups.list_groups() if g.is_active and g.is_member(user_id)]
        # groups without messages sort by creation time
        groups.sort(key=lambda g: g.last_message_time if g.last_message else g.created_at, reverse=True)
        return groups
