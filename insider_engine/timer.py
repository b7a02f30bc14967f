"""Shared countdown timer derived from an absolute deadline."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import timedelta
import logging
from typing import Any

from insider_engine.clock import Clock
from insider_engine.clock import millis_between
from insider_engine.clock import utc_now
from insider_engine.errors import UpstreamError
from insider_engine.models import Table
from insider_engine.models import TimerPhase
from insider_engine.models import TimerState
from insider_engine.store import RoomStore

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 1.0

ExpiryCallback = Callable[[TimerState], Any]


def _parse_int(value: object) -> int:
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def format_clock(ms: int) -> str:
    total_seconds = max(0, ms // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


class CountdownTimer:
    """Local view of one room timer row plus the commands that rewrite it.

    Nothing is persisted per tick: Running keeps an absolute deadline, Paused
    keeps the remaining whole seconds, and `remaining_ms()` derives the rest
    from the wall clock.
    """

    def __init__(
        self,
        *,
        store: RoomStore,
        room_id: str,
        clock: Clock = utc_now,
        on_expire: ExpiryCallback | None = None,
    ) -> None:
        self._store = store
        self.room_id = room_id
        self._clock = clock
        self._on_expire = on_expire
        self.state: TimerState | None = None
        self.expiry_fired = False

    def phase(self) -> TimerPhase:
        state = self.state
        if state is None:
            return TimerPhase.IDLE
        if state.deadline_at is not None:
            if state.deadline_at <= self._clock():
                return TimerPhase.EXPIRED
            return TimerPhase.RUNNING
        if (state.duration_seconds or 0) > 0:
            return TimerPhase.PAUSED
        return TimerPhase.IDLE

    def remaining_ms(self) -> int:
        state = self.state
        if state is None:
            return 0
        if state.deadline_at is not None:
            return max(0, millis_between(self._clock(), state.deadline_at))
        if state.duration_seconds is not None:
            return max(0, state.duration_seconds * 1000)
        return 0

    def format_remaining(self) -> str:
        return format_clock(self.remaining_ms())

    def apply_row(self, row: dict[str, Any] | None) -> None:
        """Replace the local row; every row change re-arms the expiry signal."""
        self.state = TimerState.from_row(row) if row else None
        self.expiry_fired = False

    async def fetch(self) -> TimerState | None:
        """Read the stored row into the local view; store failures propagate."""
        rows = await self._store.select(Table.TIMERS, {"room_id": self.room_id}, limit=1)
        self.apply_row(rows[0] if rows else None)
        return self.state

    async def load(self) -> TimerState | None:
        try:
            return await self.fetch()
        except UpstreamError as exc:
            logger.warning("timer load failed room=%s: %s", self.room_id, exc)
            self.apply_row(None)
            return None

    async def start(self, total_seconds: int) -> TimerState:
        if total_seconds <= 0:
            target = TimerState(room_id=self.room_id, deadline_at=None, duration_seconds=0)
        else:
            target = TimerState(
                room_id=self.room_id,
                deadline_at=self._clock() + timedelta(seconds=total_seconds),
                duration_seconds=total_seconds,
            )
        return await self._write(target)

    async def start_clock(self, minutes: object, seconds: object) -> TimerState:
        """Start from form-style minute/second inputs; unparsable parts count as zero."""
        total = max(0, _parse_int(minutes) * 60 + _parse_int(seconds))
        return await self.start(total)

    async def pause(self) -> TimerState | None:
        if self.state is None or not self.state.is_running:
            return None
        remaining = self.remaining_ms()
        remaining_seconds = -(-remaining // 1000)
        return await self._write(
            TimerState(room_id=self.room_id, deadline_at=None, duration_seconds=remaining_seconds)
        )

    async def resume(self) -> TimerState | None:
        if self.state is None or not self.state.is_paused:
            return None
        duration = int(self.state.duration_seconds or 0)
        return await self._write(
            TimerState(
                room_id=self.room_id,
                deadline_at=self._clock() + timedelta(seconds=duration),
                duration_seconds=duration,
            )
        )

    def tick(self) -> bool:
        """Fire the expiry signal once per running period; True when it fired now."""
        state = self.state
        if state is None or not state.is_running or self.expiry_fired:
            return False
        if self.remaining_ms() > 0:
            return False
        self.expiry_fired = True
        logger.info("timer expired room=%s", self.room_id)
        if self._on_expire is not None:
            try:
                self._on_expire(state)
            except Exception:
                logger.warning("expiry signal failed room=%s", self.room_id, exc_info=True)
        return True

    async def run_ticker(self, interval_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        while True:
            self.tick()
            await asyncio.sleep(interval_seconds)

    async def _write(self, target: TimerState) -> TimerState:
        row = await self._store.upsert(Table.TIMERS, target.to_row(), ("room_id",))
        self.apply_row(row)
        return TimerState.from_row(row)


__all__ = [
    "CountdownTimer",
    "DEFAULT_TICK_SECONDS",
    "ExpiryCallback",
    "format_clock",
]
