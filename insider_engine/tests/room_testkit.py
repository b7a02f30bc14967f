"""Shared fakes for room engine tests."""

from __future__ import annotations

from collections.abc import Mapping
from collections.abc import Sequence
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path
import sys
from typing import Any

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from insider_engine.errors import UpstreamError  # noqa: E402
from insider_engine.models import Table  # noqa: E402
from insider_engine.store import SqliteStore  # noqa: E402
from insider_engine.store import Subscription  # noqa: E402
from insider_engine.store import TableFilter  # noqa: E402

T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
ROOM_ID = "room-1"


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, seconds: float = 0.0, ms: int = 0) -> None:
        self.now = self.now + timedelta(seconds=seconds, milliseconds=ms)


class FixedOrderRng:
    """Stand-in for random.Random whose permutation is chosen by the test."""

    def __init__(self, order: Sequence[str]) -> None:
        self.order = list(order)

    def sample(self, population: Sequence[str], k: int) -> list[str]:
        assert sorted(population) == sorted(self.order)
        assert k == len(self.order)
        return list(self.order)

    def choice(self, seq: Sequence[str]) -> str:
        return seq[0]


class FlakyStore:
    """Delegating store that fails armed calls with UpstreamError."""

    def __init__(self, inner: SqliteStore | None = None) -> None:
        self.inner = inner or SqliteStore()
        self._failures: list[tuple[str, Table | None]] = []
        self.calls: list[tuple[str, Table]] = []

    def fail_next(self, method: str, table: Table | None = None) -> None:
        self._failures.append((method, table))

    def _maybe_fail(self, method: str, table: Table) -> None:
        self.calls.append((method, table))
        for idx, (armed_method, armed_table) in enumerate(self._failures):
            if armed_method == method and armed_table in (None, table):
                del self._failures[idx]
                raise UpstreamError(f"injected {method} failure on {table.value}")

    async def upsert(
        self,
        table: Table,
        row: dict[str, Any],
        conflict_key: Sequence[str],
        *,
        insert_only: Sequence[str] = (),
    ) -> dict[str, Any]:
        self._maybe_fail("upsert", table)
        return await self.inner.upsert(table, row, conflict_key, insert_only=insert_only)

    async def insert(self, table: Table, rows: Sequence[dict[str, Any]]) -> list[dict[str, Any]]:
        self._maybe_fail("insert", table)
        return await self.inner.insert(table, rows)

    async def select(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        *,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        self._maybe_fail("select", table)
        return await self.inner.select(table, filters, order=order, limit=limit)

    async def delete(self, table: Table, filters: Mapping[str, Any]) -> list[dict[str, Any]]:
        self._maybe_fail("delete", table)
        return await self.inner.delete(table, filters)

    async def subscribe(self, channel: str, table_filters: Sequence[TableFilter]) -> Subscription:
        return await self.inner.subscribe(channel, table_filters)

    def count(self, method: str, table: Table) -> int:
        return sum(1 for call in self.calls if call == (method, table))
