from chatsync.config import load_settings


def test_defaults(monkeypatch):
    for name in ("CHATSYNC_STORE", "REDIS_URL", "STORE_RETRY_ATTEMPTS", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    settings = load_settings()
    assert settings.store_backend == "memory"
    assert settings.redis_url is None
    assert settings.store_retry_attempts == 4


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CHATSYNC_STORE", "mongo")
    monkeypatch.setenv("MONGO_DB", "chat_test")
    monkeypatch.setenv("STORE_RETRY_ATTEMPTS", "7")
    monkeypatch.setenv("STORE_RETRY_BASE_DELAY", "0.05")
    settings = load_settings()
    assert settings.store_backend == "mongo"
    assert settings.mongo_db == "chat_test"
    assert settings.store_retry_attempts == 7
    assert settings.store_retry_base_delay == 0.05
