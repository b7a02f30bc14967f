"""Pydantic models for room APIs."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel
from pydantic import Field


class JoinRequest(BaseModel):
    """POST /api/rooms/{room_id}/members request body."""

    username: str | None = Field(default=None, max_length=64)


class IssueRoundRequest(BaseModel):
    """POST /api/rooms/{room_id}/rounds request body."""

    difficulty: str | None = None


class TimerCommandRequest(BaseModel):
    """POST /api/rooms/{room_id}/timer request body.

    `minutes`/`seconds` are only read by `start` and accept form-style strings;
    anything unparsable counts as zero.
    """

    action: Literal["start", "pause", "resume"]
    minutes: int | str | None = 0
    seconds: int | str | None = 0


class ScoreAdjustRequest(BaseModel):
    """POST /api/rooms/{room_id}/scores request body."""

    user_id: str = Field(min_length=1)
    delta: int


class MessageRequest(BaseModel):
    """POST /api/rooms/{room_id}/messages request body."""

    body: str = ""
