"""Shared fixtures for room service tests."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterator
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from insider_api.core.config import Settings
from insider_api.core.tokens import create_access_token
from insider_api.main import create_app
from insider_engine.store import SqliteStore
from insider_engine.topics import StaticTopicProvider

TEST_SECRET = "insider-test-secret-key-32-bytes-minimum"
TEST_TOPIC = "apple"


class SteppingClock:
    """UTC clock the test moves by hand."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        insider_jwt_secret=TEST_SECRET,
        insider_sqlite_path=str(tmp_path / "insider.sqlite3"),
    )


@pytest.fixture
def store() -> Iterator[SqliteStore]:
    room_store = SqliteStore()
    yield room_store
    room_store.close()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def client(settings: Settings, store: SqliteStore, clock: SteppingClock) -> Iterator[TestClient]:
    app = create_app(
        settings,
        store=store,
        topic_provider=StaticTopicProvider(words=(TEST_TOPIC,)),
        clock=clock,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build a Bearer header for a user id."""

    def _headers(user_id: str, *, expires_in_seconds: int = 3600) -> dict[str, str]:
        token = create_access_token(
            user_id=user_id,
            secret=TEST_SECRET,
            now=datetime.now(timezone.utc),
            expires_in_seconds=expires_in_seconds,
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
