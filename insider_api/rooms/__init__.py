"""Room request models and HTTP-facing room operations."""

from insider_api.rooms.models import IssueRoundRequest
from insider_api.rooms.models import JoinRequest
from insider_api.rooms.models import MessageRequest
from insider_api.rooms.models import ScoreAdjustRequest
from insider_api.rooms.models import TimerCommandRequest
from insider_api.rooms.service import issue_round
from insider_api.rooms.service import join_room
from insider_api.rooms.service import require_member

__all__ = [
    "IssueRoundRequest",
    "JoinRequest",
    "MessageRequest",
    "ScoreAdjustRequest",
    "TimerCommandRequest",
    "issue_round",
    "join_room",
    "require_member",
]
