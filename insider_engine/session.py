"""One client's view of one room: components, feed subscription and ticker."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

from insider_engine.chat import ChatLog
from insider_engine.clock import Clock
from insider_engine.clock import utc_now
from insider_engine.feed import FeedDispatcher
from insider_engine.feed import room_channel
from insider_engine.feed import room_table_filters
from insider_engine.membership import MembershipRegistry
from insider_engine.models import ChatMessage
from insider_engine.models import RoundIssue
from insider_engine.models import RoundView
from insider_engine.rounds import RoundEngine
from insider_engine.scores import ScoreBoard
from insider_engine.store import RoomStore
from insider_engine.store import Subscription
from insider_engine.timer import DEFAULT_TICK_SECONDS
from insider_engine.timer import CountdownTimer
from insider_engine.timer import ExpiryCallback

logger = logging.getLogger(__name__)


class RoomSession:
    """Everything one signed-in user sees of one room.

    The store client is handed in at construction and lives as long as the
    session. Commands write straight to the store; the change feed echo,
    including the echo of this session's own writes, is what makes local
    state canonical.
    """

    def __init__(
        self,
        *,
        store: RoomStore,
        room_id: str,
        user_id: str,
        clock: Clock = utc_now,
        on_expire: ExpiryCallback | None = None,
        rng: random.Random | None = None,
        reset_score_on_join: bool = True,
        optimistic_chat: bool = False,
    ) -> None:
        self.store = store
        self.room_id = room_id
        self.user_id = user_id
        self.membership = MembershipRegistry(
            store=store,
            room_id=room_id,
            clock=clock,
            reset_score_on_join=reset_score_on_join,
        )
        self.scores = ScoreBoard(store=store, room_id=room_id)
        self.timer = CountdownTimer(store=store, room_id=room_id, clock=clock, on_expire=on_expire)
        self.rounds = RoundEngine(store=store, clock=clock, rng=rng)
        self.chat = ChatLog(store=store, room_id=room_id, clock=clock, optimistic=optimistic_chat)
        self.round_view = RoundView()
        self.dispatcher = FeedDispatcher(
            membership=self.membership,
            scores=self.scores,
            chat=self.chat,
            timer=self.timer,
            reload_round=self.reload_round,
        )
        self.subscription: Subscription | None = None
        self._tasks: list[asyncio.Task[Any]] = []

    async def open(self, *, display_name: str | None = None) -> None:
        """Subscribe, optionally join, then load every component once."""
        if self.subscription is None:
            self.subscription = await self.store.subscribe(room_channel(self.room_id), room_table_filters(self.room_id))
        if display_name is not None:
            await self.membership.join(self.user_id, display_name)
        await self.load_all()

    async def load_all(self) -> None:
        await self.membership.list_members()
        await self.chat.history()
        await self.scores.refresh()
        await self.timer.load()
        await self.reload_round()

    def start_background(self, *, tick_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        """Run the feed dispatcher and the timer ticker on the current loop."""
        if self.subscription is None:
            raise RuntimeError("open() the session before starting background tasks")
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self.dispatcher.run(self.subscription)),
            asyncio.create_task(self.timer.run_ticker(tick_seconds)),
        ]

    async def process_pending(self) -> int:
        """Dispatch every queued feed event without waiting for new ones."""
        if self.subscription is None:
            return 0
        await asyncio.sleep(0)
        handled = 0
        for event in self.subscription.drain_nowait():
            if await self.dispatcher.dispatch(event):
                handled += 1
        return handled

    async def close(self) -> None:
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        if self.subscription is not None:
            self.subscription.close()
            self.subscription = None

    async def reload_round(self, round_id: int | None = None) -> RoundView:
        self.round_view = await self.rounds.load_view(room_id=self.room_id, user_id=self.user_id, round_id=round_id)
        return self.round_view

    async def issue_round(self, topic: str) -> RoundIssue:
        """Deal a new round to everyone currently in the room."""
        members = await self.membership.fetch()
        issue = await self.rounds.issue_round(
            room_id=self.room_id,
            requester_id=self.user_id,
            member_ids=[member.user_id for member in members],
            topic=topic,
        )
        self.round_view = RoundView(round_id=issue.round_id, role=issue.role, topic=issue.topic)
        return issue

    async def leave(self) -> None:
        await self.membership.leave(self.user_id)
        await self.close()

    async def adjust_score(self, user_id: str, delta: int) -> int:
        return await self.scores.adjust(user_id, delta)

    async def send_message(self, body: str | None = None) -> ChatMessage | None:
        return await self.chat.send(self.user_id, body)

    def snapshot(self) -> dict[str, Any]:
        view = self.round_view
        return {
            "room_id": self.room_id,
            "user_id": self.user_id,
            "members": [
                {
                    "user_id": member.user_id,
                    "username": member.username,
                    "score": self.scores.score_of(member.user_id),
                }
                for member in self.membership.members
            ],
            "round": {
                "round_id": view.round_id,
                "has_round": view.has_round,
                "role": view.role.value if view.role is not None else None,
                "topic": view.topic,
            },
            "timer": {
                "phase": self.timer.phase().value,
                "remaining_ms": self.timer.remaining_ms(),
                "display": self.timer.format_remaining(),
            },
            "messages": [
                {
                    "id": message.id,
                    "user_id": message.user_id,
                    "username": self.membership.display_name(message.user_id),
                    "body": message.body,
                    "created_at": message.created_at,
                }
                for message in self.chat.messages
            ],
        }


__all__ = ["RoomSession"]
