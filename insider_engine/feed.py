"""Change-feed parsing and routing onto the room components."""

from __future__ import annotations

from collections.abc import AsyncIterable
from collections.abc import Awaitable
from collections.abc import Callable
from collections.abc import Mapping
import logging
from typing import Any

from insider_engine.chat import ChatLog
from insider_engine.errors import ChangeFeedError
from insider_engine.membership import MembershipRegistry
from insider_engine.models import ChangeEvent
from insider_engine.models import Operation
from insider_engine.models import Table
from insider_engine.scores import ScoreBoard
from insider_engine.store import TableFilter
from insider_engine.timer import CountdownTimer

logger = logging.getLogger(__name__)

RoundReloader = Callable[[int | None], Awaitable[Any]]
Handler = Callable[[ChangeEvent], Awaitable[None]]


def room_channel(room_id: str) -> str:
    return f"room:{room_id}"


def room_table_filters(room_id: str) -> list[TableFilter]:
    """Tables one room session listens to; role rows carry no room id and are checked on reload."""
    scoped = {"room_id": room_id}
    return [
        TableFilter(Table.MEMBERS, scoped),
        TableFilter(Table.MESSAGES, scoped),
        TableFilter(Table.SCORES, scoped),
        TableFilter(Table.TIMERS, scoped),
        TableFilter(Table.ROUNDS, scoped),
        TableFilter(Table.ROUND_ROLES),
    ]


def _optional_row(payload: Mapping[str, Any], key: str) -> dict[str, Any] | None:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ChangeFeedError(f"change payload field {key!r} must be an object", detail={"field": key})
    return dict(value)


def parse_change(payload: ChangeEvent | Mapping[str, Any]) -> ChangeEvent:
    """Turn a raw `{table, operation, new, old}` payload into a typed event."""
    if isinstance(payload, ChangeEvent):
        return payload
    if not isinstance(payload, Mapping):
        raise ChangeFeedError("change payload must be an object")

    raw_table = payload.get("table")
    raw_operation = payload.get("operation", payload.get("eventType"))
    try:
        table = Table(str(raw_table))
    except ValueError as exc:
        raise ChangeFeedError(f"unknown table {raw_table!r}", detail={"table": raw_table}) from exc
    try:
        operation = Operation(str(raw_operation).upper())
    except ValueError as exc:
        raise ChangeFeedError(f"unknown operation {raw_operation!r}", detail={"operation": raw_operation}) from exc

    new = _optional_row(payload, "new")
    old = _optional_row(payload, "old")
    if new is None and "row" in payload:
        new = _optional_row(payload, "row")
    if operation is Operation.DELETE:
        if old is None:
            old, new = new, None
        if old is None:
            raise ChangeFeedError("DELETE event without old row", detail={"table": table.value})
    elif new is None:
        raise ChangeFeedError(f"{operation.value} event without new row", detail={"table": table.value})
    return ChangeEvent(table=table, operation=operation, new=new, old=old)


class FeedDispatcher:
    """Coarse invalidation: membership and scores refetch in full, the rest patch locally."""

    def __init__(
        self,
        *,
        membership: MembershipRegistry,
        scores: ScoreBoard,
        chat: ChatLog,
        timer: CountdownTimer,
        reload_round: RoundReloader,
    ) -> None:
        self._membership = membership
        self._scores = scores
        self._chat = chat
        self._timer = timer
        self._reload_round = reload_round
        self._routes: dict[tuple[Table, Operation], Handler] = {}
        for operation in Operation:
            self._routes[(Table.MEMBERS, operation)] = self._on_members
            self._routes[(Table.SCORES, operation)] = self._on_scores
        self._routes[(Table.MESSAGES, Operation.INSERT)] = self._on_message
        self._routes[(Table.TIMERS, Operation.INSERT)] = self._on_timer
        self._routes[(Table.TIMERS, Operation.UPDATE)] = self._on_timer
        self._routes[(Table.TIMERS, Operation.DELETE)] = self._on_timer_deleted
        self._routes[(Table.ROUNDS, Operation.INSERT)] = self._on_round
        self._routes[(Table.ROUND_ROLES, Operation.INSERT)] = self._on_round_role

    async def dispatch(self, payload: ChangeEvent | Mapping[str, Any]) -> bool:
        """Route one event; False when it was dropped."""
        try:
            event = parse_change(payload)
        except ChangeFeedError as exc:
            logger.warning("dropping change event: %s", exc)
            return False

        handler = self._routes.get((event.table, event.operation))
        if handler is None:
            logger.debug("ignoring %s on %s", event.operation.value, event.table.value)
            return False
        try:
            await handler(event)
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("dropping malformed %s row: %s", event.table.value, exc)
            return False
        return True

    async def run(self, events: AsyncIterable[ChangeEvent | Mapping[str, Any]]) -> None:
        async for payload in events:
            await self.dispatch(payload)

    async def _on_members(self, _: ChangeEvent) -> None:
        await self._membership.list_members()

    async def _on_scores(self, _: ChangeEvent) -> None:
        await self._scores.refresh()

    async def _on_message(self, event: ChangeEvent) -> None:
        self._chat.append(event.row)

    async def _on_timer(self, event: ChangeEvent) -> None:
        self._timer.apply_row(event.row)

    async def _on_timer_deleted(self, _: ChangeEvent) -> None:
        self._timer.apply_row(None)

    async def _on_round(self, event: ChangeEvent) -> None:
        round_id = event.row.get("id")
        await self._reload_round(round_id if isinstance(round_id, int) else None)

    async def _on_round_role(self, event: ChangeEvent) -> None:
        round_id = event.row.get("round_id")
        if not isinstance(round_id, int):
            raise ValueError("round_roles event without integer round_id")
        await self._reload_round(round_id)


__all__ = [
    "FeedDispatcher",
    "parse_change",
    "room_channel",
    "room_table_filters",
]
