import logging
from typing import Dict, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from gridfs.errors import NoFile
from motor.motor_asyncio import AsyncIOMotorDatabase, AsyncIOMotorGridFSBucket

from chatsync.exceptions import NotFoundError, ValidationError
from chatsync.utils.ids import new_id

logger = logging.getLogger(__name__)


def _check_payload(data: bytes) -> None:
    if not data:
        raise ValidationError("Image payload is empty", error_code="EMPTY_IMAGE")


class MemoryMediaStorage:

    def __init__(self, base_url: str = "/media") -> None:
        self._base_url = base_url.rstrip("/")
        self._files: Dict[str, Tuple[str, bytes]] = {}

    async def upload(self, data: bytes, filename: str = "image.jpg") -> str:
        _check_payload(data)
        media_id = new_id()
        self._files[media_id] = (filename, bytes(data))
        return f"{self._base_url}/{media_id}"

    async def download(self, media_id: str) -> Tuple[str, bytes]:
        if media_id not in self._files:
            raise NotFoundError("Media not found", error_code="MEDIA_NOT_FOUND", details={"media_id": media_id})
        return self._files[media_id]


class GridFSMediaStorage:

    def __init__(self, db: AsyncIOMotorDatabase, base_url: str = "/media") -> None:
        self._bucket = AsyncIOMotorGridFSBucket(db, bucket_name="media")
        self._base_url = base_url.rstrip("/")

    async def upload(self, data: bytes, filename: str = "image.jpg") -> str:
        _check_payload(data)
        file_id = await self._bucket.upload_from_stream(filename, data)
        logger.info("Stored %d bytes as media %s", len(data), file_id)
        return f"{self._base_url}/{file_id}"

    async def download(self, media_id: str) -> Tuple[str, bytes]:
        try:
            stream = await self._bucket.open_download_stream(ObjectId(media_id))
        except (InvalidId, NoFile):
            raise NotFoundError("Media not found", error_code="MEDIA_NOT_FOUND", details={"media_id": media_id})
        return stream.filename, await stream.read()
