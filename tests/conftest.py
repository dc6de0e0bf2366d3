"""Shared fixtures for the teams-mcp test suite."""

import os
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from pydantic import SecretStr

from teams_mcp.auth.models import CredentialRecord
from teams_mcp.auth.storage.base import TokenStorage
from teams_mcp.config.settings import AuthSettings
from teams_mcp.core.logging import setup_logging


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom settings."""
    config.option.asyncio_mode = "auto"
    setup_logging(json_logs=False, log_level_name="DEBUG")


FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


class MemoryStorage(TokenStorage):
    """Token storage kept in memory, counting writes."""

    def __init__(self, record: CredentialRecord | None = None):
        self.record = record
        self.save_count = 0

    async def load(self) -> CredentialRecord | None:
        return self.record

    async def save(self, record: CredentialRecord) -> None:
        self.save_count += 1
        self.record = record

    async def clear(self) -> bool:
        existed = self.record is not None
        self.record = None
        return existed

    async def exists(self) -> bool:
        return self.record is not None

    def get_location(self) -> str:
        return "memory"


class RecordingSleeper:
    """Async sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep user configuration and environment overrides out of tests."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    monkeypatch.delenv("CONFIG_FILE", raising=False)
    for key in list(os.environ):
        if key.upper().startswith(("AUTH__", "GRAPH__", "LOGGING__", "SERVER__")):
            monkeypatch.delenv(key)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def clock(now: datetime) -> Callable[[], datetime]:
    return lambda: now


@pytest.fixture
def credentials_path(tmp_path: Path) -> Path:
    return tmp_path / "creds" / "msgraph-auth.json"


@pytest.fixture
def auth_settings(credentials_path: Path) -> AuthSettings:
    return AuthSettings(
        authority_url="https://login.test",
        tenant_id="common",
        credentials_path=credentials_path,
        scopes=["User.Read", "offline_access"],
    )


@pytest.fixture
def make_record(now: datetime) -> Callable[..., CredentialRecord]:
    """Factory for authenticated records; ``expires_in`` is seconds from now."""

    def factory(
        expires_in: float = 3600,
        access_token: str = "access-token-0001",
        refresh_token: str | None = "refresh-token-0001",
        **overrides: Any,
    ) -> CredentialRecord:
        values: dict[str, Any] = {
            "client_id": "test-client",
            "authenticated": True,
            "issued_at": now,
            "expires_at": now + timedelta(seconds=expires_in),
            "access_token": SecretStr(access_token),
            "refresh_token": SecretStr(refresh_token) if refresh_token else None,
        }
        values.update(overrides)
        return CredentialRecord(**values)

    return factory


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()
