"""Per-member score board with optimistic local updates."""

from __future__ import annotations

import logging

from insider_engine.errors import UpstreamError
from insider_engine.models import ScoreEntry
from insider_engine.models import Table
from insider_engine.store import RoomStore

logger = logging.getLogger(__name__)


class ScoreBoard:
    """Scores of one room.

    `adjust` is a read-modify-write on the local view followed by an upsert,
    not an atomic increment: two clients adjusting at once can lose a delta.
    """

    def __init__(self, *, store: RoomStore, room_id: str) -> None:
        self._store = store
        self.room_id = room_id
        self.scores: dict[str, int] = {}

    def score_of(self, user_id: str) -> int:
        return self.scores.get(user_id, 0)

    async def adjust(self, user_id: str, delta: int) -> int:
        next_score = self.score_of(user_id) + int(delta)
        self.scores[user_id] = next_score
        try:
            await self._store.upsert(
                Table.SCORES,
                {"room_id": self.room_id, "user_id": user_id, "score": next_score},
                ("room_id", "user_id"),
            )
        except UpstreamError:
            logger.warning("score update failed room=%s user=%s, reloading", self.room_id, user_id)
            await self.refresh()
            raise
        return next_score

    async def fetch(self) -> dict[str, int]:
        rows = await self._store.select(Table.SCORES, {"room_id": self.room_id})
        entries = [ScoreEntry.from_row(row) for row in rows]
        return {entry.user_id: entry.score for entry in entries}

    async def refresh(self) -> dict[str, int]:
        """Replace the local view with the canonical scores; a failed read empties it."""
        try:
            self.scores = await self.fetch()
        except UpstreamError as exc:
            logger.warning("score load failed room=%s: %s", self.room_id, exc)
            self.scores = {}
        return dict(self.scores)


__all__ = ["ScoreBoard"]
