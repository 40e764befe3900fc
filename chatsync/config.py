import os
from functools import lru_cache
from typing import Literal, Optional

from pydantic import BaseModel


class Settings(BaseModel):

    store_backend: Literal["memory", "mongo"] = "memory"
    mongo_url: str = "mongodb://localhost:27017"
    mongo_db: str = "chatsync"
    redis_url: Optional[str] = None
    fcm_service_account_file: Optional[str] = None
    fcm_project_id: Optional[str] = None
    media_base_url: str = "/media"
    store_retry_attempts: int = 4
    store_retry_base_delay: float = 0.2
    store_retry_max_delay: float = 5.0
    log_level: str = "INFO"


def load_settings() -> Settings:
    env = {
        "store_backend": os.getenv("CHATSYNC_STORE"),
        "mongo_url": os.getenv("MONGO_URL"),
        "mongo_db": os.getenv("MONGO_DB"),
        "redis_url": os.getenv("REDIS_URL"),
        "fcm_service_account_file": os.getenv("FCM_SERVICE_ACCOUNT_FILE"),
        "fcm_project_id": os.getenv("FCM_PROJECT_ID"),
        "media_base_url": os.getenv("MEDIA_BASE_URL"),
        "store_retry_attempts": os.getenv("STORE_RETRY_ATTEMPTS"),
        "store_retry_base_delay": os.getenv("STORE_RETRY_BASE_DELAY"),
        "store_retry_max_delay": os.getenv("STORE_RETRY_MAX_DELAY"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    # unset variables fall back to the model defaults
    return Settings(**{k: v for k, v in env.items() if v})


@lru_cache
def get_settings() -> Settings:
    return load_settings()
