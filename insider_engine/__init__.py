"""Room state synchronization and hidden-role round engine."""

from insider_engine.chat import ChatLog
from insider_engine.errors import AuthorizationError
from insider_engine.errors import ChangeFeedError
from insider_engine.errors import NotFoundError
from insider_engine.errors import RoomError
from insider_engine.errors import UpstreamError
from insider_engine.errors import ValidationError
from insider_engine.feed import FeedDispatcher
from insider_engine.feed import parse_change
from insider_engine.membership import MembershipRegistry
from insider_engine.models import ChangeEvent
from insider_engine.models import Operation
from insider_engine.models import Role
from insider_engine.models import RoundIssue
from insider_engine.models import RoundView
from insider_engine.models import Table
from insider_engine.models import TimerPhase
from insider_engine.rounds import RoundEngine
from insider_engine.rounds import assign_roles
from insider_engine.rounds import visible_topic
from insider_engine.scores import ScoreBoard
from insider_engine.session import RoomSession
from insider_engine.store import RoomStore
from insider_engine.store import SqliteStore
from insider_engine.timer import CountdownTimer

__all__ = [
    "AuthorizationError",
    "ChangeEvent",
    "ChangeFeedError",
    "ChatLog",
    "CountdownTimer",
    "FeedDispatcher",
    "MembershipRegistry",
    "NotFoundError",
    "Operation",
    "Role",
    "RoomError",
    "RoomSession",
    "RoomStore",
    "RoundEngine",
    "RoundIssue",
    "RoundView",
    "ScoreBoard",
    "SqliteStore",
    "Table",
    "TimerPhase",
    "UpstreamError",
    "ValidationError",
    "assign_roles",
    "parse_change",
    "visible_topic",
]
