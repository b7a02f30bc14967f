"""Row types shared by the store, the engine components and the change feed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from insider_engine.clock import parse_utc_iso
from insider_engine.clock import to_utc_iso

ANONYMOUS_NAME = "anonymous"


class Table(str, Enum):
    """Store tables observed by the room change feed."""

    MEMBERS = "room_members"
    SCORES = "room_scores"
    TIMERS = "timers"
    ROUNDS = "rounds"
    ROUND_ROLES = "round_roles"
    MESSAGES = "messages"


class Operation(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class Role(str, Enum):
    """Round role; `None` in place of a Role means the role is unresolved."""

    PRESENTER = "presenter"
    INSIDER = "insider"
    COMMON = "common"

    @property
    def sees_topic(self) -> bool:
        return self in (Role.PRESENTER, Role.INSIDER)


class TimerPhase(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"
    EXPIRED = "expired"


def normalize_display_name(raw: object) -> str:
    name = str(raw).strip() if raw is not None else ""
    return name or ANONYMOUS_NAME


@dataclass(slots=True, frozen=True)
class Member:
    room_id: str
    user_id: str
    username: str
    joined_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Member":
        return cls(
            room_id=str(row["room_id"]),
            user_id=str(row["user_id"]),
            username=normalize_display_name(row.get("username")),
            joined_at=str(row.get("joined_at") or ""),
        )


@dataclass(slots=True, frozen=True)
class ScoreEntry:
    room_id: str
    user_id: str
    score: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ScoreEntry":
        return cls(
            room_id=str(row["room_id"]),
            user_id=str(row["user_id"]),
            score=int(row.get("score") or 0),
        )


@dataclass(slots=True, frozen=True)
class TimerState:
    """One timer row. `deadline_at` wins over `duration_seconds` when classifying."""

    room_id: str
    deadline_at: datetime | None = None
    duration_seconds: int | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "TimerState":
        raw_deadline = row.get("deadline_at")
        raw_duration = row.get("duration_seconds")
        return cls(
            room_id=str(row["room_id"]),
            deadline_at=parse_utc_iso(str(raw_deadline)) if raw_deadline else None,
            duration_seconds=int(raw_duration) if raw_duration is not None else None,
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "deadline_at": to_utc_iso(self.deadline_at) if self.deadline_at is not None else None,
            "duration_seconds": self.duration_seconds,
        }

    @property
    def is_running(self) -> bool:
        return self.deadline_at is not None

    @property
    def is_paused(self) -> bool:
        return self.deadline_at is None and (self.duration_seconds or 0) > 0


@dataclass(slots=True, frozen=True)
class Round:
    id: int
    room_id: str
    topic: str
    created_by: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Round":
        return cls(
            id=int(row["id"]),
            room_id=str(row["room_id"]),
            topic=str(row.get("topic") or ""),
            created_by=str(row.get("created_by") or ""),
            created_at=str(row.get("created_at") or ""),
        )


@dataclass(slots=True, frozen=True)
class RoleAssignment:
    round_id: int
    user_id: str
    role: Role

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RoleAssignment":
        return cls(
            round_id=int(row["round_id"]),
            user_id=str(row["user_id"]),
            role=Role(str(row["role"])),
        )

    def to_row(self) -> dict[str, Any]:
        return {"round_id": self.round_id, "user_id": self.user_id, "role": self.role.value}


@dataclass(slots=True, frozen=True)
class ChatMessage:
    id: int | None
    room_id: str
    user_id: str | None
    body: str
    created_at: str

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ChatMessage":
        raw_id = row.get("id")
        raw_user = row.get("user_id")
        return cls(
            id=int(raw_id) if raw_id is not None else None,
            room_id=str(row["room_id"]),
            user_id=str(raw_user) if raw_user is not None else None,
            body=str(row["body"]),
            created_at=str(row.get("created_at") or ""),
        )


@dataclass(slots=True, frozen=True)
class RoundIssue:
    """Result handed to the member who issued a round."""

    round_id: int
    role: Role
    topic: str | None


@dataclass(slots=True, frozen=True)
class RoundView:
    """What one reader may know about the current round."""

    round_id: int | None = None
    role: Role | None = None
    topic: str | None = None

    @property
    def has_round(self) -> bool:
        return self.round_id is not None


@dataclass(slots=True, frozen=True)
class ChangeEvent:
    """One row-level mutation pushed by the store change feed."""

    table: Table
    operation: Operation
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    @property
    def row(self) -> dict[str, Any]:
        if self.operation is Operation.DELETE:
            return dict(self.old or {})
        return dict(self.new or {})


__all__ = [
    "ANONYMOUS_NAME",
    "ChangeEvent",
    "ChatMessage",
    "Member",
    "Operation",
    "Role",
    "RoleAssignment",
    "Round",
    "RoundIssue",
    "RoundView",
    "ScoreEntry",
    "Table",
    "TimerPhase",
    "TimerState",
    "normalize_display_name",
]
