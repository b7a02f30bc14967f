"""Append-only room chat log."""

from __future__ import annotations

import logging
from typing import Any

from insider_engine.clock import Clock
from insider_engine.clock import to_utc_iso
from insider_engine.clock import utc_now
from insider_engine.errors import UpstreamError
from insider_engine.models import ChatMessage
from insider_engine.models import Table
from insider_engine.store import RoomStore

logger = logging.getLogger(__name__)


class ChatLog:
    """Local message list and compose draft for one room.

    Echoes from the change feed are appended as they arrive. There is no
    deduplication key, so with `optimistic=True` the sender sees its own
    message twice once the echo lands.
    """

    def __init__(
        self,
        *,
        store: RoomStore,
        room_id: str,
        clock: Clock = utc_now,
        optimistic: bool = False,
    ) -> None:
        self._store = store
        self.room_id = room_id
        self._clock = clock
        self.optimistic = optimistic
        self.messages: list[ChatMessage] = []
        self.draft = ""

    async def send(self, user_id: str, body: str | None = None) -> ChatMessage | None:
        """Send `body` (or the current draft); blank input writes nothing."""
        text = (self.draft if body is None else body).strip()
        if not text:
            return None

        self.draft = ""
        row = {
            "room_id": self.room_id,
            "user_id": user_id,
            "body": text,
            "created_at": to_utc_iso(self._clock()),
        }
        provisional: ChatMessage | None = None
        if self.optimistic:
            provisional = ChatMessage.from_row(row)
            self.messages.append(provisional)

        try:
            stored = await self._store.insert(Table.MESSAGES, [row])
        except UpstreamError:
            self.draft = text
            if provisional is not None and provisional in self.messages:
                self.messages.remove(provisional)
            raise
        return ChatMessage.from_row(stored[0])

    async def fetch(self) -> list[ChatMessage]:
        rows = await self._store.select(Table.MESSAGES, {"room_id": self.room_id}, order=("id",))
        return [ChatMessage.from_row(row) for row in rows]

    async def history(self) -> list[ChatMessage]:
        try:
            self.messages = await self.fetch()
        except UpstreamError as exc:
            logger.warning("chat history failed room=%s: %s", self.room_id, exc)
            self.messages = []
        return list(self.messages)

    def append(self, row: dict[str, Any]) -> ChatMessage:
        message = ChatMessage.from_row(row)
        self.messages.append(message)
        return message


__all__ = ["ChatLog"]
