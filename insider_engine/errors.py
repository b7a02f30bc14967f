"""Room engine error taxonomy."""

from __future__ import annotations

from typing import Any


class RoomError(Exception):
    """Base class for room-domain errors."""

    status_code = 500
    code = "ROOM_ERROR"

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.detail: dict[str, Any] = detail or {}


class ValidationError(RoomError):
    """Raised for missing or ill-formed input, including rooms with fewer than two members."""

    status_code = 400
    code = "VALIDATION_ERROR"


class AuthorizationError(RoomError):
    """Raised when the requester is not a member of the room."""

    status_code = 403
    code = "ROOM_NOT_MEMBER"


class NotFoundError(RoomError):
    """Raised when a room has no current round or timer."""

    status_code = 404
    code = "NOT_FOUND"


class UpstreamError(RoomError):
    """Raised when the store or the topic provider fails."""

    status_code = 500
    code = "UPSTREAM_ERROR"


class ChangeFeedError(ValidationError):
    """Raised when a change-feed payload has an unknown or malformed shape."""

    code = "CHANGE_FEED_INVALID"


__all__ = [
    "AuthorizationError",
    "ChangeFeedError",
    "NotFoundError",
    "RoomError",
    "UpstreamError",
    "ValidationError",
]
