import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatsync.config import Settings, get_settings
from chatsync.container import ChatCore, build_core
from chatsync.database.connection import StoreConnection
from chatsync.exceptions import ChatError
from chatsync.routers.chat import router as chat_router
from chatsync.routers.conversations import router as conversations_router
from chatsync.routers.devices import router as devices_router
from chatsync.routers.friends import router as friends_router
from chatsync.routers.groups import router as groups_router
from chatsync.routers.notifications import router as notifications_router
from chatsync.routers.presence import router as presence_router
from chatsync.routers.users import media_router, router as users_router
from chatsync.utils.media import GridFSMediaStorage, MemoryMediaStorage
from chatsync.utils.notifications import create_push
from chatsync.utils.realtime_bus import create_bus
from chatsync.utils.websocket_manager import ConnectionManager

logger = logging.getLogger(__name__)


@asynccontextmanager
async def serving(app: FastAPI, core: ChatCore):
    """Install ``core`` on the app and follow its auth transitions while serving."""
    app.state.core = core
    tracker = asyncio.create_task(core.presence.track_auth(core.auth))
    try:
        yield
    finally:
        # pending transitions are applied before the tracker stops
        core.auth.close()
        await tracker


def create_app(settings: Optional[Settings] = None, core: Optional[ChatCore] = None) -> FastAPI:
    """Build the HTTP app. A prebuilt ``core`` skips backend setup entirely."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if core is not None:
            async with serving(app, core):
                yield
            return

        bus = create_bus(settings.redis_url)
        connection = StoreConnection(settings, bus)
        store = await connection.connect()
        db = connection.get_database()
        if db is not None:
            media = GridFSMediaStorage(db, base_url=settings.media_base_url)
        else:
            media = MemoryMediaStorage(base_url=settings.media_base_url)
        push = create_push(settings.fcm_service_account_file, settings.fcm_project_id)
        logger.info("chatsync started with %s store", settings.store_backend)
        try:
            async with serving(app, build_core(store, bus=bus, push=push, media=media)):
                yield
        finally:
            await connection.close()
            await bus.close()

    app = FastAPI(title="chatsync", lifespan=lifespan)
    app.state.connections = ConnectionManager()

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(users_router)
    app.include_router(media_router)
    app.include_router(friends_router)
    app.include_router(chat_router)
    app.include_router(conversations_router)
    app.include_router(presence_router)
    app.include_router(notifications_router)
    app.include_router(groups_router)
    app.include_router(devices_router)

    @app.get("/")
    async def root():
        return {"message": "chatsync is running", "store": settings.store_backend}

    return app


logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()
