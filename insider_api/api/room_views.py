"""Room view builders used by REST and WS responses."""

from __future__ import annotations

from typing import Any

from insider_engine.models import ChatMessage
from insider_engine.models import Member
from insider_engine.models import RoundIssue
from insider_engine.models import RoundView
from insider_engine.timer import CountdownTimer


def member_view(member: Member, score: int) -> dict[str, object]:
    return {
        "user_id": member.user_id,
        "username": member.username,
        "joined_at": member.joined_at,
        "score": score,
    }


def issue_view(issue: RoundIssue) -> dict[str, Any]:
    return {
        "round_id": issue.round_id,
        "role": issue.role.value,
        "topic": issue.topic,
    }


def round_view(view: RoundView) -> dict[str, Any]:
    """Role is null while the role rows are not visible yet."""
    return {
        "round_id": view.round_id,
        "role": view.role.value if view.role is not None else None,
        "topic": view.topic,
    }


def timer_view(timer: CountdownTimer) -> dict[str, Any]:
    state = timer.state
    return {
        "phase": timer.phase().value,
        "remaining_ms": timer.remaining_ms(),
        "display": timer.format_remaining(),
        "duration_seconds": state.duration_seconds if state is not None else None,
    }


def message_view(message: ChatMessage, username: str) -> dict[str, Any]:
    return {
        "id": message.id,
        "user_id": message.user_id,
        "username": username,
        "body": message.body,
        "created_at": message.created_at,
    }
