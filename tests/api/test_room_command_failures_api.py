"""Command routes must surface store read failures instead of writing from an empty view."""

from __future__ import annotations

from collections.abc import Callable
from collections.abc import Iterator
from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

ENGINE_TESTS_DIR = Path(__file__).resolve().parents[2] / "insider_engine" / "tests"
if str(ENGINE_TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(ENGINE_TESTS_DIR))

from room_testkit import FlakyStore  # noqa: E402

from insider_api.core.config import Settings  # noqa: E402
from insider_api.main import create_app  # noqa: E402
from insider_engine.models import Table  # noqa: E402
from insider_engine.store import SqliteStore  # noqa: E402
from insider_engine.topics import StaticTopicProvider  # noqa: E402


@pytest.fixture
def flaky_store(store: SqliteStore) -> FlakyStore:
    return FlakyStore(store)


@pytest.fixture
def flaky_client(settings: Settings, flaky_store: FlakyStore, clock) -> Iterator[TestClient]:
    app = create_app(
        settings,
        store=flaky_store,
        topic_provider=StaticTopicProvider(words=("apple",)),
        clock=clock,
    )
    with TestClient(app) as test_client:
        yield test_client


def _join(client: TestClient, headers: dict[str, str], name: str) -> None:
    assert client.post("/api/rooms/r1/members", json={"username": name}, headers=headers).status_code == 200


def test_score_read_failure_is_500_and_keeps_stored_score(
    flaky_client: TestClient,
    flaky_store: FlakyStore,
    auth_headers: Callable[..., dict[str, str]],
) -> None:
    """Input: B at 10, score read fails during +1 -> Output: 500 UPSTREAM_ERROR, B still 10."""
    alice = auth_headers("A")
    _join(flaky_client, alice, "alice")
    _join(flaky_client, auth_headers("B"), "bob")
    first = flaky_client.post("/api/rooms/r1/scores", json={"user_id": "B", "delta": 10}, headers=alice)
    assert first.json() == {"user_id": "B", "score": 10}
    upserts_before = flaky_store.count("upsert", Table.SCORES)

    flaky_store.fail_next("select", Table.SCORES)
    response = flaky_client.post("/api/rooms/r1/scores", json={"user_id": "B", "delta": 1}, headers=alice)

    assert response.status_code == 500
    assert response.json()["code"] == "UPSTREAM_ERROR"
    assert flaky_store.count("upsert", Table.SCORES) == upserts_before
    members = flaky_client.get("/api/rooms/r1/members", headers=alice).json()
    assert {member["user_id"]: member["score"] for member in members} == {"A": 0, "B": 10}


def test_timer_read_failure_is_500_and_keeps_running_row(
    flaky_client: TestClient,
    flaky_store: FlakyStore,
    auth_headers: Callable[..., dict[str, str]],
) -> None:
    """Input: running 30s timer, timer read fails during pause -> Output: 500, row still running."""
    alice = auth_headers("A")
    _join(flaky_client, alice, "alice")
    started = flaky_client.post(
        "/api/rooms/r1/timer",
        json={"action": "start", "minutes": 0, "seconds": 30},
        headers=alice,
    )
    assert started.json()["phase"] == "running"

    flaky_store.fail_next("select", Table.TIMERS)
    response = flaky_client.post("/api/rooms/r1/timer", json={"action": "pause"}, headers=alice)

    assert response.status_code == 500
    assert response.json()["code"] == "UPSTREAM_ERROR"
    state = flaky_client.get("/api/rooms/r1/state", headers=alice).json()
    assert state["timer"]["phase"] == "running"
    assert state["timer"]["remaining_ms"] == 30_000
