"""Room membership registry backed by the shared store."""

from __future__ import annotations

import logging

from insider_engine.clock import Clock
from insider_engine.clock import to_utc_iso
from insider_engine.clock import utc_now
from insider_engine.errors import UpstreamError
from insider_engine.models import Member
from insider_engine.models import Table
from insider_engine.models import normalize_display_name
from insider_engine.store import RoomStore

logger = logging.getLogger(__name__)


class MembershipRegistry:
    """Who is in one room, in join order."""

    def __init__(
        self,
        *,
        store: RoomStore,
        room_id: str,
        clock: Clock = utc_now,
        reset_score_on_join: bool = True,
    ) -> None:
        self._store = store
        self.room_id = room_id
        self._clock = clock
        self.reset_score_on_join = reset_score_on_join
        self.members: list[Member] = []

    async def join(self, user_id: str, display_name: str | None) -> Member:
        """Upsert the member row and seed the score row.

        With `reset_score_on_join` the seed overwrites any existing score, so a
        rejoin starts again from 0.
        """
        row = await self._store.upsert(
            Table.MEMBERS,
            {
                "room_id": self.room_id,
                "user_id": user_id,
                "username": normalize_display_name(display_name),
                "joined_at": to_utc_iso(self._clock()),
            },
            ("room_id", "user_id"),
            insert_only=("joined_at",),
        )
        score_row = {"room_id": self.room_id, "user_id": user_id, "score": 0}
        if self.reset_score_on_join:
            await self._store.upsert(Table.SCORES, score_row, ("room_id", "user_id"))
        else:
            await self._store.upsert(Table.SCORES, score_row, ("room_id", "user_id"), insert_only=("score",))
        logger.info("member joined room=%s user=%s", self.room_id, user_id)
        return Member.from_row(row)

    async def leave(self, user_id: str) -> None:
        """Delete the member and its score; nothing is kept."""
        filters = {"room_id": self.room_id, "user_id": user_id}
        await self._store.delete(Table.MEMBERS, filters)
        await self._store.delete(Table.SCORES, filters)
        logger.info("member left room=%s user=%s", self.room_id, user_id)

    async def fetch(self) -> list[Member]:
        rows = await self._store.select(Table.MEMBERS, {"room_id": self.room_id}, order=("joined_at", "user_id"))
        return [Member.from_row(row) for row in rows]

    async def list_members(self) -> list[Member]:
        """Refresh the local member list; a failed read shows an empty room."""
        try:
            self.members = await self.fetch()
        except UpstreamError as exc:
            logger.warning("member list failed room=%s: %s", self.room_id, exc)
            self.members = []
        return list(self.members)

    async def is_member(self, user_id: str) -> bool:
        rows = await self._store.select(Table.MEMBERS, {"room_id": self.room_id, "user_id": user_id}, limit=1)
        return bool(rows)

    def member_ids(self) -> list[str]:
        return [member.user_id for member in self.members]

    def display_name(self, user_id: str | None) -> str:
        for member in self.members:
            if member.user_id == user_id:
                return member.username
        return normalize_display_name(None)


__all__ = ["MembershipRegistry"]
