"""Room join / members / leave REST contract tests."""

from __future__ import annotations

from collections.abc import Callable

from fastapi.testclient import TestClient


def test_join_requires_bearer_token(client: TestClient) -> None:
    """Input: no Authorization header -> Output: 401 AUTH_TOKEN_INVALID."""
    response = client.post("/api/rooms/r1/members", json={"username": "alice"})

    assert response.status_code == 401
    assert response.json() == {
        "code": "AUTH_TOKEN_INVALID",
        "message": "invalid or missing access token",
        "detail": {},
    }


def test_join_rejects_malformed_and_expired_tokens(
    client: TestClient,
    auth_headers: Callable[..., dict[str, str]],
) -> None:
    wrong_scheme = client.post("/api/rooms/r1/members", json={}, headers={"Authorization": "Token abc"})
    garbage = client.post("/api/rooms/r1/members", json={}, headers={"Authorization": "Bearer not-a-jwt"})
    expired = client.post("/api/rooms/r1/members", json={}, headers=auth_headers("A", expires_in_seconds=-5))

    assert wrong_scheme.status_code == 401
    assert garbage.status_code == 401
    assert garbage.json()["code"] == "AUTH_TOKEN_INVALID"
    assert expired.status_code == 401
    assert expired.json()["code"] == "AUTH_TOKEN_EXPIRED"


def test_join_then_list_members_in_join_order(
    client: TestClient,
    auth_headers: Callable[..., dict[str, str]],
    clock,
) -> None:
    """Input: C, A, B join in that order -> Output: members listed C, A, B with score 0."""
    for user_id, name in (("C", "carol"), ("A", "alice"), ("B", "  ")):
        response = client.post("/api/rooms/r1/members", json={"username": name}, headers=auth_headers(user_id))
        assert response.status_code == 200
        assert response.json() == {"ok": True}
        clock.advance(seconds=1)

    response = client.get("/api/rooms/r1/members", headers=auth_headers("A"))

    assert response.status_code == 200
    members = response.json()
    assert [member["user_id"] for member in members] == ["C", "A", "B"]
    assert [member["username"] for member in members] == ["carol", "alice", "anonymous"]
    assert all(member["score"] == 0 for member in members)


def test_join_is_idempotent(client: TestClient, auth_headers: Callable[..., dict[str, str]]) -> None:
    headers = auth_headers("A")
    client.post("/api/rooms/r1/members", json={"username": "alice"}, headers=headers)
    client.post("/api/rooms/r1/members", json={"username": "alice"}, headers=headers)

    members = client.get("/api/rooms/r1/members", headers=headers).json()

    assert [member["user_id"] for member in members] == ["A"]


def test_join_body_is_validated(client: TestClient, auth_headers: Callable[..., dict[str, str]]) -> None:
    response = client.post("/api/rooms/r1/members", json={"username": "x" * 65}, headers=auth_headers("A"))

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_members_require_membership(client: TestClient, auth_headers: Callable[..., dict[str, str]]) -> None:
    """Input: outsider lists members -> Output: 403 ROOM_NOT_MEMBER."""
    client.post("/api/rooms/r1/members", json={"username": "alice"}, headers=auth_headers("A"))

    response = client.get("/api/rooms/r1/members", headers=auth_headers("Z"))

    assert response.status_code == 403
    assert response.json() == {
        "code": "ROOM_NOT_MEMBER",
        "message": "user is not a room member",
        "detail": {"room_id": "r1", "user_id": "Z"},
    }


def test_leave_then_rejoin_resets_score(client: TestClient, auth_headers: Callable[..., dict[str, str]]) -> None:
    """Input: score 4, leave, rejoin -> Output: member back with score 0."""
    alice = auth_headers("A")
    bob = auth_headers("B")
    client.post("/api/rooms/r1/members", json={"username": "alice"}, headers=alice)
    client.post("/api/rooms/r1/members", json={"username": "bob"}, headers=bob)
    client.post("/api/rooms/r1/scores", json={"user_id": "B", "delta": 4}, headers=alice)

    left = client.post("/api/rooms/r1/leave", headers=bob)
    after_leave = client.get("/api/rooms/r1/members", headers=alice).json()
    forbidden = client.get("/api/rooms/r1/members", headers=bob)
    client.post("/api/rooms/r1/members", json={"username": "bob"}, headers=bob)
    after_rejoin = client.get("/api/rooms/r1/members", headers=alice).json()

    assert left.json() == {"ok": True}
    assert [member["user_id"] for member in after_leave] == ["A"]
    assert forbidden.status_code == 403
    assert {member["user_id"]: member["score"] for member in after_rejoin} == {"A": 0, "B": 0}


def test_leave_requires_membership(client: TestClient, auth_headers: Callable[..., dict[str, str]]) -> None:
    response = client.post("/api/rooms/r1/leave", headers=auth_headers("A"))

    assert response.status_code == 403
