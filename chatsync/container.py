from dataclasses import dataclass

from chatsync.auth import AuthContext
from chatsync.database.store import RemoteStore
from chatsync.repositories.conversation_repository import ConversationRepository
from chatsync.repositories.device_repository import DeviceRepository
from chatsync.repositories.friend_repository import FriendRepository
from chatsync.repositories.group_repository import GroupRepository
from chatsync.repositories.message_repository import MessageRepository
from chatsync.repositories.notification_repository import NotificationRepository
from chatsync.repositories.user_repository import UserRepository
from chatsync.services.chat_service import ChatService
from chatsync.services.conversation_indexer import ConversationIndexer
from chatsync.services.friend_service import FriendService
from chatsync.services.group_service import GroupService
from chatsync.services.message_store import MessageStore
from chatsync.services.notification_service import NotificationDispatcher
from chatsync.services.presence_service import PresenceTracker
from chatsync.services.user_service import UserService
from chatsync.utils.clock import Clock, now_ms
from chatsync.utils.media import MemoryMediaStorage
from chatsync.utils.notifications import NoopPush
from chatsync.utils.realtime_bus import NoopBus


@dataclass
class ChatCore:
    """Every component, wired once by whoever owns the process."""

    store: RemoteStore
    users: UserService
    presence: PresenceTracker
    friends: FriendService
    notifications: NotificationDispatcher
    messages: MessageStore
    indexer: ConversationIndexer
    chat: ChatService
    groups: GroupService
    devices: DeviceRepository
    media: object
    auth: AuthContext
    clock: Clock


def build_core(store: RemoteStore, bus=None, push=None, media=None, clock: Clock = now_ms) -> ChatCore:
    bus = bus or NoopBus()
    push = push or NoopPush()
    media = media or MemoryMediaStorage()

    user_repo = UserRepository(store)
    message_repo = MessageRepository(store)
    devices = DeviceRepository(store)

    notifications = NotificationDispatcher(NotificationRepository(store), push, devices, clock=clock)
    presence = PresenceTracker(user_repo, bus, clock=clock)
    friends = FriendService(FriendRepository(store), user_repo, notifications, clock=clock)
    messages = MessageStore(message_repo, clock=clock)
    indexer = ConversationIndexer(ConversationRepository(store), message_repo)
    chat = ChatService(messages, indexer, friends, presence, notifications, user_repo, media=media)
    groups = GroupService(
        GroupRepository(store),
        MessageStore(MessageRepository(store, root="group_messages"), clock=clock),
        user_repo,
        clock=clock,
    )
    return ChatCore(
        store=store,
        users=UserService(user_repo, clock=clock),
        presence=presence,
        friends=friends,
        notifications=notifications,
        messages=messages,
        indexer=indexer,
        chat=chat,
        groups=groups,
        devices=devices,
        media=media,
        auth=AuthContext(),
        clock=clock,
    )
