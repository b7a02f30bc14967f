"""Store contract plus a SQLite reference adapter with an in-process change feed.

The engine components only talk to `RoomStore`. `SqliteStore` is the
adapter used by the HTTP service and the tests: writes commit first, then the
resulting row events are fanned out to every matching subscription.

The `async` methods of `SqliteStore` run their SQLite calls inline under a
thread lock and never suspend. A networked store adapter behind the same
protocol is where the engine actually awaits.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
import itertools
import logging
import sqlite3
import threading
from typing import Any
from typing import Protocol

from insider_engine.errors import UpstreamError
from insider_engine.errors import ValidationError
from insider_engine.models import ChangeEvent
from insider_engine.models import Operation
from insider_engine.models import Table

logger = logging.getLogger(__name__)

Row = dict[str, Any]

CREATE_ROOM_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS room_members (
    room_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    username TEXT NULL,
    joined_at TEXT NOT NULL,
    PRIMARY KEY (room_id, user_id)
);

CREATE TABLE IF NOT EXISTS room_scores (
    room_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    score INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (room_id, user_id)
);

CREATE TABLE IF NOT EXISTS timers (
    room_id TEXT PRIMARY KEY,
    deadline_at TEXT NULL,
    duration_seconds INTEGER NULL
);

CREATE TABLE IF NOT EXISTS rounds (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    room_id TEXT NOT NULL,
    topic TEXT NOT NULL,
    created_by TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS round_roles (
    round_id INTEGER NOT NULL,
    user_id TEXT NOT NULL,
    role TEXT NOT NULL CHECK (role IN ('presenter', 'insider', 'common')),
    PRIMARY KEY (round_id, user_id)
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    room_id TEXT NOT NULL,
    user_id TEXT NULL,
    body TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_room_members_joined_at ON room_members(room_id, joined_at);
CREATE INDEX IF NOT EXISTS idx_rounds_room_created_at ON rounds(room_id, created_at);
CREATE INDEX IF NOT EXISTS idx_messages_room_id ON messages(room_id, id);
"""

TABLE_COLUMNS: dict[Table, tuple[str, ...]] = {
    Table.MEMBERS: ("room_id", "user_id", "username", "joined_at"),
    Table.SCORES: ("room_id", "user_id", "score"),
    Table.TIMERS: ("room_id", "deadline_at", "duration_seconds"),
    Table.ROUNDS: ("id", "room_id", "topic", "created_by", "created_at"),
    Table.ROUND_ROLES: ("round_id", "user_id", "role"),
    Table.MESSAGES: ("id", "room_id", "user_id", "body", "created_at"),
}


@dataclass(slots=True, frozen=True)
class TableFilter:
    """Subscribe to one table, optionally restricted by column equality."""

    table: Table
    filters: Mapping[str, Any] = field(default_factory=dict)

    def matches(self, event: ChangeEvent) -> bool:
        if event.table is not self.table:
            return False
        row = event.row
        return all(row.get(column) == value for column, value in self.filters.items())


class Subscription:
    """Async stream of change events for one channel."""

    _CLOSED = object()

    def __init__(
        self,
        *,
        channel: str,
        table_filters: Sequence[TableFilter],
        loop: asyncio.AbstractEventLoop,
        on_close: Any = None,
    ) -> None:
        self.channel = channel
        self.table_filters = tuple(table_filters)
        self._loop = loop
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._on_close = on_close
        self.closed = False

    def wants(self, event: ChangeEvent) -> bool:
        return any(table_filter.matches(event) for table_filter in self.table_filters)

    def deliver(self, event: ChangeEvent) -> bool:
        """Queue one event from any thread; False once the owning loop is gone."""
        if self.closed:
            return False
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            self.closed = True
            return False
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._on_close is not None:
            self._on_close(self)
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, self._CLOSED)
        except RuntimeError:
            return

    def drain_nowait(self) -> list[ChangeEvent]:
        """Take every event already queued without waiting."""
        events: list[ChangeEvent] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if item is self._CLOSED:
                self._queue.put_nowait(item)
                return events
            events.append(item)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        return item


class RoomStore(Protocol):
    """Persistent store with a change feed, as consumed by the room engine."""

    async def upsert(
        self,
        table: Table,
        row: Row,
        conflict_key: Sequence[str],
        *,
        insert_only: Sequence[str] = (),
    ) -> Row: ...

    async def insert(self, table: Table, rows: Sequence[Row]) -> list[Row]: ...

    async def select(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        *,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]: ...

    async def delete(self, table: Table, filters: Mapping[str, Any]) -> list[Row]: ...

    async def subscribe(self, channel: str, table_filters: Sequence[TableFilter]) -> Subscription: ...


def create_sqlite_connection(path: str) -> sqlite3.Connection:
    """Create a SQLite connection shared by the event loop and worker threads."""
    conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn


def _checked_columns(table: Table, columns: Iterable[str]) -> list[str]:
    allowed = TABLE_COLUMNS[table]
    checked: list[str] = []
    for column in columns:
        if column not in allowed:
            raise ValidationError(
                f"unknown column {column!r} for table {table.value}",
                detail={"table": table.value, "column": column},
            )
        checked.append(column)
    return checked


def _where_clause(table: Table, filters: Mapping[str, Any]) -> tuple[str, list[Any]]:
    columns = _checked_columns(table, filters)
    if not columns:
        return "", []
    clause = " AND ".join(f"{column} = ?" for column in columns)
    return f" WHERE {clause}", [filters[column] for column in columns]


def _order_clause(table: Table, order: Sequence[str]) -> str:
    parts: list[str] = []
    for item in order:
        descending = item.startswith("-")
        column = item[1:] if descending else item
        _checked_columns(table, [column])
        parts.append(f"{column} {'DESC' if descending else 'ASC'}")
    if not parts:
        return ""
    return " ORDER BY " + ", ".join(parts)


class SqliteStore:
    """`RoomStore` backed by one SQLite connection."""

    def __init__(self, path: str = ":memory:") -> None:
        self.path = path
        self._conn = create_sqlite_connection(path)
        self._lock = threading.RLock()
        self._subscriptions: dict[int, Subscription] = {}
        self._subscription_ids = itertools.count(1)
        self._conn.executescript(CREATE_ROOM_SCHEMA_SQL)

    def close(self) -> None:
        with self._lock:
            for subscription in list(self._subscriptions.values()):
                subscription.close()
            self._conn.close()

    async def upsert(
        self,
        table: Table,
        row: Row,
        conflict_key: Sequence[str],
        *,
        insert_only: Sequence[str] = (),
    ) -> Row:
        """Insert `row`, or update the row sharing `conflict_key`.

        Columns listed in `insert_only` are written on insert and left alone
        on conflict.
        """
        columns = _checked_columns(table, row)
        key_columns = _checked_columns(table, conflict_key)
        if not key_columns or any(column not in row for column in key_columns):
            raise ValidationError("upsert requires every conflict key column", detail={"table": table.value})
        key_filter = {column: row[column] for column in key_columns}
        where, params = _where_clause(table, key_filter)

        with self._lock:
            try:
                self._conn.execute("BEGIN")
                existing = self._conn.execute(f"SELECT * FROM {table.value}{where}", params).fetchone()
                if existing is None:
                    placeholders = ", ".join("?" for _ in columns)
                    self._conn.execute(
                        f"INSERT INTO {table.value} ({', '.join(columns)}) VALUES ({placeholders})",
                        [row[column] for column in columns],
                    )
                    operation = Operation.INSERT
                else:
                    update_columns = [
                        column for column in columns if column not in key_columns and column not in insert_only
                    ]
                    if update_columns:
                        assignments = ", ".join(f"{column} = ?" for column in update_columns)
                        self._conn.execute(
                            f"UPDATE {table.value} SET {assignments}{where}",
                            [row[column] for column in update_columns] + params,
                        )
                    operation = Operation.UPDATE
                fresh = self._conn.execute(f"SELECT * FROM {table.value}{where}", params).fetchone()
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise UpstreamError(f"upsert into {table.value} failed: {exc}") from exc

        new_row = dict(fresh)
        old_row = dict(existing) if existing is not None else None
        self._publish([ChangeEvent(table=table, operation=operation, new=new_row, old=old_row)])
        return new_row

    async def insert(self, table: Table, rows: Sequence[Row]) -> list[Row]:
        """Insert all rows in one transaction and return them as stored."""
        if not rows:
            return []
        planned = [(row, _checked_columns(table, row)) for row in rows]
        inserted: list[Row] = []
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                for row, columns in planned:
                    placeholders = ", ".join("?" for _ in columns)
                    cursor = self._conn.execute(
                        f"INSERT INTO {table.value} ({', '.join(columns)}) VALUES ({placeholders})",
                        [row[column] for column in columns],
                    )
                    stored = self._conn.execute(
                        f"SELECT * FROM {table.value} WHERE rowid = ?",
                        (cursor.lastrowid,),
                    ).fetchone()
                    inserted.append(dict(stored))
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise UpstreamError(f"insert into {table.value} failed: {exc}") from exc

        self._publish([ChangeEvent(table=table, operation=Operation.INSERT, new=row) for row in inserted])
        return [dict(row) for row in inserted]

    async def select(
        self,
        table: Table,
        filters: Mapping[str, Any] | None = None,
        *,
        order: Sequence[str] = (),
        limit: int | None = None,
    ) -> list[Row]:
        where, params = _where_clause(table, filters or {})
        sql = f"SELECT * FROM {table.value}{where}{_order_clause(table, order)}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._lock:
            try:
                return [dict(row) for row in self._conn.execute(sql, params).fetchall()]
            except sqlite3.Error as exc:
                raise UpstreamError(f"select from {table.value} failed: {exc}") from exc

    async def delete(self, table: Table, filters: Mapping[str, Any]) -> list[Row]:
        where, params = _where_clause(table, filters)
        if not where:
            raise ValidationError("delete requires at least one filter", detail={"table": table.value})
        with self._lock:
            try:
                self._conn.execute("BEGIN")
                removed = [dict(row) for row in self._conn.execute(f"SELECT * FROM {table.value}{where}", params)]
                self._conn.execute(f"DELETE FROM {table.value}{where}", params)
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                self._rollback()
                raise UpstreamError(f"delete from {table.value} failed: {exc}") from exc

        self._publish([ChangeEvent(table=table, operation=Operation.DELETE, old=row) for row in removed])
        return removed

    async def subscribe(self, channel: str, table_filters: Sequence[TableFilter]) -> Subscription:
        subscription_id = next(self._subscription_ids)

        def _forget(_: Subscription) -> None:
            with self._lock:
                self._subscriptions.pop(subscription_id, None)

        subscription = Subscription(
            channel=channel,
            table_filters=table_filters,
            loop=asyncio.get_running_loop(),
            on_close=_forget,
        )
        with self._lock:
            self._subscriptions[subscription_id] = subscription
        logger.debug("subscribed channel=%s tables=%s", channel, [f.table.value for f in table_filters])
        return subscription

    def _rollback(self) -> None:
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            return

    def _publish(self, events: Sequence[ChangeEvent]) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions.items())
        for subscription_id, subscription in subscriptions:
            for event in events:
                if not subscription.wants(event):
                    continue
                if not subscription.deliver(event):
                    logger.debug("dropping subscription channel=%s: loop closed", subscription.channel)
                    with self._lock:
                        self._subscriptions.pop(subscription_id, None)
                    break


__all__ = [
    "CREATE_ROOM_SCHEMA_SQL",
    "RoomStore",
    "Row",
    "SqliteStore",
    "Subscription",
    "TABLE_COLUMNS",
    "TableFilter",
    "create_sqlite_connection",
]
