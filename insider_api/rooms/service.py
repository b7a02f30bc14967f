"""Room operations exposed over HTTP, composed from the engine components."""

from __future__ import annotations

import random
from typing import Any

from insider_api.api.room_views import issue_view
from insider_api.api.room_views import member_view
from insider_api.api.room_views import message_view
from insider_api.api.room_views import round_view
from insider_api.api.room_views import timer_view
from insider_api.rooms.models import IssueRoundRequest
from insider_api.rooms.models import JoinRequest
from insider_api.rooms.models import MessageRequest
from insider_api.rooms.models import ScoreAdjustRequest
from insider_api.rooms.models import TimerCommandRequest
from insider_engine.chat import ChatLog
from insider_engine.clock import Clock
from insider_engine.errors import AuthorizationError
from insider_engine.errors import NotFoundError
from insider_engine.errors import ValidationError
from insider_engine.membership import MembershipRegistry
from insider_engine.models import RoundView
from insider_engine.rounds import MIN_ROUND_MEMBERS
from insider_engine.rounds import RoundEngine
from insider_engine.rounds import visible_topic
from insider_engine.scores import ScoreBoard
from insider_engine.session import RoomSession
from insider_engine.store import RoomStore
from insider_engine.timer import CountdownTimer
from insider_engine.topics import TopicProvider
from insider_engine.topics import normalize_difficulty


async def require_member(*, store: RoomStore, room_id: str, user_id: str, clock: Clock) -> MembershipRegistry:
    """Return the room registry, or raise when `user_id` has not joined the room."""
    registry = MembershipRegistry(store=store, room_id=room_id, clock=clock)
    if not await registry.is_member(user_id):
        raise AuthorizationError(
            "user is not a room member",
            detail={"room_id": room_id, "user_id": user_id},
        )
    return registry


async def join_room(
    *,
    store: RoomStore,
    clock: Clock,
    room_id: str,
    user_id: str,
    payload: JoinRequest,
    reset_score_on_join: bool = True,
) -> dict[str, bool]:
    registry = MembershipRegistry(
        store=store,
        room_id=room_id,
        clock=clock,
        reset_score_on_join=reset_score_on_join,
    )
    await registry.join(user_id, payload.username)
    return {"ok": True}


async def leave_room(*, store: RoomStore, clock: Clock, room_id: str, user_id: str) -> dict[str, bool]:
    registry = await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    await registry.leave(user_id)
    return {"ok": True}


async def list_room_members(*, store: RoomStore, clock: Clock, room_id: str, user_id: str) -> list[dict[str, Any]]:
    registry = await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    members = await registry.fetch()
    scores = await ScoreBoard(store=store, room_id=room_id).fetch()
    return [member_view(member, scores.get(member.user_id, 0)) for member in members]


async def issue_round(
    *,
    store: RoomStore,
    provider: TopicProvider,
    clock: Clock,
    rng: random.Random,
    room_id: str,
    user_id: str,
    payload: IssueRoundRequest,
) -> dict[str, Any]:
    """Authorize, fetch a topic, then deal roles to the current members."""
    registry = await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    difficulty = normalize_difficulty(payload.difficulty)
    members = await registry.fetch()
    if len(members) < MIN_ROUND_MEMBERS:
        raise ValidationError(
            "a round needs at least two members",
            detail={"room_id": room_id, "member_count": len(members)},
        )

    topic = await provider.next_topic(difficulty)
    engine = RoundEngine(store=store, clock=clock, rng=rng)
    issue = await engine.issue_round(
        room_id=room_id,
        requester_id=user_id,
        member_ids=[member.user_id for member in members],
        topic=topic,
    )
    return issue_view(issue)


async def current_round(*, store: RoomStore, clock: Clock, room_id: str, user_id: str) -> dict[str, Any]:
    await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    engine = RoundEngine(store=store, clock=clock)
    round_ = await engine.current_round(room_id)
    if round_ is None:
        raise NotFoundError("room has no round yet", detail={"room_id": room_id})
    role = await engine.role_of(round_.id, user_id)
    return round_view(RoundView(round_id=round_.id, role=role, topic=visible_topic(round_, role)))


async def command_timer(
    *,
    store: RoomStore,
    clock: Clock,
    room_id: str,
    user_id: str,
    payload: TimerCommandRequest,
) -> dict[str, Any]:
    """Apply one start/pause/resume command; pause/resume outside their phase are no-ops.

    The current row is read strictly: a failed read raises instead of looking idle.
    """
    await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    timer = CountdownTimer(store=store, room_id=room_id, clock=clock)
    await timer.fetch()
    if payload.action == "start":
        await timer.start_clock(payload.minutes, payload.seconds)
    elif payload.action == "pause":
        await timer.pause()
    else:
        await timer.resume()
    return timer_view(timer)


async def adjust_score(
    *,
    store: RoomStore,
    clock: Clock,
    room_id: str,
    user_id: str,
    payload: ScoreAdjustRequest,
) -> dict[str, Any]:
    registry = await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    if not await registry.is_member(payload.user_id):
        raise ValidationError(
            "score target is not a room member",
            detail={"room_id": room_id, "user_id": payload.user_id},
        )
    board = ScoreBoard(store=store, room_id=room_id)
    board.scores = await board.fetch()
    score = await board.adjust(payload.user_id, payload.delta)
    return {"user_id": payload.user_id, "score": score}


async def send_message(
    *,
    store: RoomStore,
    clock: Clock,
    room_id: str,
    user_id: str,
    payload: MessageRequest,
) -> dict[str, Any]:
    registry = await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    chat = ChatLog(store=store, room_id=room_id, clock=clock)
    message = await chat.send(user_id, payload.body)
    if message is None:
        return {"ok": True, "message": None}
    await registry.list_members()
    return {"ok": True, "message": message_view(message, registry.display_name(message.user_id))}


async def room_state(*, store: RoomStore, clock: Clock, room_id: str, user_id: str) -> dict[str, Any]:
    """Everything the caller may see of the room, loaded once."""
    await require_member(store=store, room_id=room_id, user_id=user_id, clock=clock)
    session = RoomSession(store=store, room_id=room_id, user_id=user_id, clock=clock)
    await session.load_all()
    return session.snapshot()


__all__ = [
    "adjust_score",
    "command_timer",
    "current_round",
    "issue_round",
    "join_room",
    "leave_room",
    "list_room_members",
    "require_member",
    "room_state",
    "send_message",
]
