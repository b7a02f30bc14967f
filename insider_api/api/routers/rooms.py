"""Room REST routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter
from fastapi import Header
from fastapi import Request

from insider_api.api.deps import app_clock
from insider_api.api.deps import app_rng
from insider_api.api.deps import app_settings
from insider_api.api.deps import require_current_user
from insider_api.api.deps import room_store
from insider_api.api.deps import topic_provider
from insider_api.api.errors import raise_room_error
from insider_api.rooms import service
from insider_api.rooms.models import IssueRoundRequest
from insider_api.rooms.models import JoinRequest
from insider_api.rooms.models import MessageRequest
from insider_api.rooms.models import ScoreAdjustRequest
from insider_api.rooms.models import TimerCommandRequest
from insider_engine.errors import RoomError

router = APIRouter()


@router.post("/api/rooms/{room_id}/members")
async def join_room(
    room_id: str,
    payload: JoinRequest,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, bool]:
    """Join a room; no prior membership required."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.join_room(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
            payload=payload,
            reset_score_on_join=app_settings(request).insider_reset_score_on_join,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.get("/api/rooms/{room_id}/members")
async def list_members(
    room_id: str,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> list[dict[str, Any]]:
    """Members in join order, with their scores."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.list_room_members(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.post("/api/rooms/{room_id}/leave")
async def leave_room(
    room_id: str,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, bool]:
    """Leave a room; membership and score are deleted."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.leave_room(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.post("/api/rooms/{room_id}/rounds")
async def issue_round(
    room_id: str,
    request: Request,
    payload: IssueRoundRequest | None = None,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Start a round; the caller learns its own role and, if allowed, the topic."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.issue_round(
            store=room_store(request),
            provider=topic_provider(request),
            clock=app_clock(request),
            rng=app_rng(request),
            room_id=room_id,
            user_id=user_id,
            payload=payload or IssueRoundRequest(),
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.get("/api/rooms/{room_id}/rounds/current")
async def get_current_round(
    room_id: str,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    user_id = require_current_user(request, authorization)
    try:
        return await service.current_round(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.post("/api/rooms/{room_id}/timer")
async def command_timer(
    room_id: str,
    payload: TimerCommandRequest,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Start, pause or resume the shared countdown."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.command_timer(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
            payload=payload,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.post("/api/rooms/{room_id}/scores")
async def adjust_score(
    room_id: str,
    payload: ScoreAdjustRequest,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    user_id = require_current_user(request, authorization)
    try:
        return await service.adjust_score(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
            payload=payload,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.post("/api/rooms/{room_id}/messages")
async def send_message(
    room_id: str,
    payload: MessageRequest,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Post a chat message; a blank body is accepted and writes nothing."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.send_message(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
            payload=payload,
        )
    except RoomError as exc:
        raise_room_error(exc)


@router.get("/api/rooms/{room_id}/state")
async def get_room_state(
    room_id: str,
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Composed room view for the caller: members, scores, timer, chat and round."""
    user_id = require_current_user(request, authorization)
    try:
        return await service.room_state(
            store=room_store(request),
            clock=app_clock(request),
            room_id=room_id,
            user_id=user_id,
        )
    except RoomError as exc:
        raise_room_error(exc)
