"""Round creation, role assignment and role-gated topic visibility."""

from __future__ import annotations

from collections.abc import Sequence
import logging
import random

from insider_engine.clock import Clock
from insider_engine.clock import to_utc_iso
from insider_engine.clock import utc_now
from insider_engine.errors import AuthorizationError
from insider_engine.errors import UpstreamError
from insider_engine.errors import ValidationError
from insider_engine.models import RoleAssignment
from insider_engine.models import Role
from insider_engine.models import Round
from insider_engine.models import RoundIssue
from insider_engine.models import RoundView
from insider_engine.models import Table
from insider_engine.store import RoomStore

logger = logging.getLogger(__name__)

MIN_ROUND_MEMBERS = 2


def assign_roles(member_ids: Sequence[str], rng: random.Random) -> dict[str, Role]:
    """Draw one uniform permutation: first is presenter, second insider, rest common."""
    unique_ids = list(dict.fromkeys(member_ids))
    if len(unique_ids) < MIN_ROUND_MEMBERS:
        raise ValidationError(
            "a round needs at least two members",
            detail={"member_count": len(unique_ids)},
        )
    order = rng.sample(unique_ids, len(unique_ids))
    roles = {user_id: Role.COMMON for user_id in order}
    roles[order[0]] = Role.PRESENTER
    roles[order[1]] = Role.INSIDER
    return roles


def visible_topic(round_: Round, role: Role | None) -> str | None:
    """Return the topic only for roles allowed to see it; unresolved sees nothing."""
    if role is not None and role.sees_topic:
        return round_.topic
    return None


class RoundEngine:
    """Issues rounds for one store and resolves what each reader may see."""

    def __init__(
        self,
        *,
        store: RoomStore,
        clock: Clock = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._rng = rng or random.Random()

    async def issue_round(
        self,
        *,
        room_id: str,
        requester_id: str,
        member_ids: Sequence[str],
        topic: str,
    ) -> RoundIssue:
        """Create a round and its role rows.

        The round row and the role batch are two writes. When the role batch
        fails the round stays behind without roles, which readers observe as
        an unresolved role rather than corruption.
        """
        if len(set(member_ids)) < MIN_ROUND_MEMBERS:
            raise ValidationError(
                "a round needs at least two members",
                detail={"room_id": room_id, "member_count": len(set(member_ids))},
            )
        if requester_id not in member_ids:
            raise AuthorizationError(
                "requester is not a room member",
                detail={"room_id": room_id, "user_id": requester_id},
            )
        clean_topic = (topic or "").strip()
        if not clean_topic:
            raise ValidationError("topic must not be empty", detail={"room_id": room_id})

        roles = assign_roles(member_ids, self._rng)
        round_rows = await self._store.insert(
            Table.ROUNDS,
            [
                {
                    "room_id": room_id,
                    "topic": clean_topic,
                    "created_by": requester_id,
                    "created_at": to_utc_iso(self._clock()),
                }
            ],
        )
        round_ = Round.from_row(round_rows[0])
        assignments = [
            RoleAssignment(round_id=round_.id, user_id=user_id, role=role) for user_id, role in roles.items()
        ]
        try:
            await self._store.insert(Table.ROUND_ROLES, [assignment.to_row() for assignment in assignments])
        except UpstreamError:
            logger.warning("round=%s room=%s created without role rows", round_.id, room_id)
            raise

        role = roles[requester_id]
        logger.info("issued round=%s room=%s members=%d", round_.id, room_id, len(roles))
        return RoundIssue(round_id=round_.id, role=role, topic=visible_topic(round_, role))

    async def get_round(self, round_id: int) -> Round | None:
        rows = await self._store.select(Table.ROUNDS, {"id": round_id}, limit=1)
        return Round.from_row(rows[0]) if rows else None

    async def current_round(self, room_id: str) -> Round | None:
        rows = await self._store.select(
            Table.ROUNDS,
            {"room_id": room_id},
            order=("-created_at", "-id"),
            limit=1,
        )
        return Round.from_row(rows[0]) if rows else None

    async def role_of(self, round_id: int, user_id: str) -> Role | None:
        rows = await self._store.select(Table.ROUND_ROLES, {"round_id": round_id, "user_id": user_id}, limit=1)
        if not rows:
            return None
        return RoleAssignment.from_row(rows[0]).role

    async def load_view(self, *, room_id: str, user_id: str, round_id: int | None = None) -> RoundView:
        """Resolve the reader-facing view; read failures degrade to no role and no topic."""
        try:
            round_ = None
            if round_id is not None:
                candidate = await self.get_round(round_id)
                if candidate is not None and candidate.room_id == room_id:
                    round_ = candidate
            if round_ is None:
                round_ = await self.current_round(room_id)
        except UpstreamError as exc:
            logger.warning("round load failed room=%s: %s", room_id, exc)
            return RoundView()
        if round_ is None:
            return RoundView()

        try:
            role = await self.role_of(round_.id, user_id)
        except UpstreamError as exc:
            logger.warning("role load failed round=%s: %s", round_.id, exc)
            return RoundView(round_id=round_.id)
        return RoundView(round_id=round_.id, role=role, topic=visible_topic(round_, role))


__all__ = [
    "MIN_ROUND_MEMBERS",
    "RoundEngine",
    "assign_roles",
    "visible_topic",
]
