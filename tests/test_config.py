"""Tests for environment-based settings."""

from datetime import timedelta

from pocketbook.config import Settings
from pocketbook.domain.ledger import DEFAULT_OWNER_ID
from pocketbook.domain.queue import DEFAULT_MAX_ATTEMPTS


def test_defaults(monkeypatch):
    for name in (
        "POCKETBOOK_DB_PATH",
        "POCKETBOOK_REMOTE_URL",
        "POCKETBOOK_OWNER_ID",
        "POCKETBOOK_MAX_ATTEMPTS",
        "POCKETBOOK_TOMBSTONE_RETENTION_DAYS",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.db_path is None
    assert settings.remote_url is None
    assert settings.owner_id == DEFAULT_OWNER_ID
    assert settings.max_attempts == DEFAULT_MAX_ATTEMPTS
    assert settings.tombstone_retention == timedelta(days=30)


def test_from_env(monkeypatch):
    monkeypatch.setenv("POCKETBOOK_DB_PATH", "/tmp/book.db")
    monkeypatch.setenv("POCKETBOOK_REMOTE_URL", "memory://")
    monkeypatch.setenv("POCKETBOOK_OWNER_ID", "ana")
    monkeypatch.setenv("POCKETBOOK_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("POCKETBOOK_TOMBSTONE_RETENTION_DAYS", "10")

    settings = Settings.from_env()

    assert settings.db_path == "/tmp/book.db"
    assert settings.remote_url == "memory://"
    assert settings.owner_id == "ana"
    assert settings.max_attempts == 7
    assert settings.tombstone_retention == timedelta(days=10)


def test_invalid_integers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("POCKETBOOK_MAX_ATTEMPTS", "many")
    monkeypatch.setenv("POCKETBOOK_TOMBSTONE_RETENTION_DAYS", "0")

    settings = Settings.from_env()

    assert settings.max_attempts == DEFAULT_MAX_ATTEMPTS
    assert settings.tombstone_retention_days == 30


def test_empty_remote_url_disables_sync(monkeypatch):
    monkeypatch.setenv("POCKETBOOK_REMOTE_URL", "")
    assert Settings.from_env().remote_url is None
