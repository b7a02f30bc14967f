"""Relay of the store change feed to one browser socket.

The feed carries rows every subscriber of the room channel can see, so hidden
round information is stripped here: `rounds` rows lose their topic and
`round_roles` rows only reach the user they belong to, and only for rounds
of this room.
"""

from __future__ import annotations

import logging
from typing import Any

from insider_engine.errors import UpstreamError
from insider_engine.feed import room_channel
from insider_engine.feed import room_table_filters
from insider_engine.models import ChangeEvent
from insider_engine.models import Table
from insider_engine.rounds import RoundEngine
from insider_engine.store import RoomStore
from insider_engine.store import Subscription

from .protocol import ws_send_event

logger = logging.getLogger(__name__)

HIDDEN_ROUND_COLUMNS = frozenset({"topic"})


def redact_change(event: ChangeEvent, *, viewer_id: str) -> dict[str, Any] | None:
    """Shape one event for `viewer_id`; None when the viewer must not see it at all."""
    row = event.row
    if event.table is Table.ROUNDS:
        row = {column: value for column, value in row.items() if column not in HIDDEN_ROUND_COLUMNS}
    elif event.table is Table.ROUND_ROLES and row.get("user_id") != viewer_id:
        return None
    return {"table": event.table.value, "operation": event.operation.value, "row": row}


class RoomRelay:
    """One subscription on the room channel, forwarded as CHANGE frames."""

    def __init__(self, *, store: RoomStore, room_id: str, viewer_id: str) -> None:
        self._store = store
        self.room_id = room_id
        self.viewer_id = viewer_id
        self._rounds = RoundEngine(store=store)
        self.subscription: Subscription | None = None

    async def open(self) -> None:
        self.subscription = await self._store.subscribe(room_channel(self.room_id), room_table_filters(self.room_id))

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None

    async def payload_for(self, event: ChangeEvent) -> dict[str, Any] | None:
        payload = redact_change(event, viewer_id=self.viewer_id)
        if payload is None or event.table is not Table.ROUND_ROLES:
            return payload
        round_id = payload["row"].get("round_id")
        try:
            round_ = await self._rounds.get_round(int(round_id)) if round_id is not None else None
        except (UpstreamError, TypeError, ValueError) as exc:
            logger.warning("dropping role event for round=%r: %s", round_id, exc)
            return None
        if round_ is None or round_.room_id != self.room_id:
            return None
        return payload

    async def pump(self, websocket: Any) -> None:
        """Forward events until the subscription closes."""
        if self.subscription is None:
            raise RuntimeError("open() the relay before pumping")
        async for event in self.subscription:
            payload = await self.payload_for(event)
            if payload is not None:
                await ws_send_event(websocket, "CHANGE", payload)


__all__ = ["HIDDEN_ROUND_COLUMNS", "RoomRelay", "redact_change"]
