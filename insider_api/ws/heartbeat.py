"""Keep-alive probing and the receive loop of one room socket."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from collections.abc import Sequence
from datetime import datetime
from datetime import timezone
import logging
from typing import Any

from fastapi import WebSocketDisconnect

from .protocol import WS_CLOSE_HEARTBEAT_TIMEOUT
from .protocol import WS_CLOSE_UNAUTHORIZED
from .protocol import WS_CLOSE_UPSTREAM
from .protocol import is_client_frame
from .protocol import ws_send_event

logger = logging.getLogger(__name__)


class HeartbeatState:
    """Outstanding-probe bookkeeping for one socket."""

    def __init__(self) -> None:
        self.missed_pong_count = 0
        self._awaiting_pong = False
        self._pong_event = asyncio.Event()

    def mark_ping_sent(self) -> None:
        self._awaiting_pong = True
        self._pong_event.clear()

    def mark_pong_received(self) -> None:
        if not self._awaiting_pong:
            return
        self._awaiting_pong = False
        self.missed_pong_count = 0
        self._pong_event.set()

    async def wait_for_pong(self, *, timeout_seconds: float) -> bool:
        if not self._awaiting_pong:
            return True
        try:
            await asyncio.wait_for(self._pong_event.wait(), timeout=timeout_seconds)
        except TimeoutError:
            self._awaiting_pong = False
            self.missed_pong_count += 1
            return False
        return True


async def handle_client_message(*, websocket: Any, heartbeat_state: HeartbeatState, message: str) -> None:
    """Answer client PINGs and record PONGs; anything else is ignored."""
    if is_client_frame(message, "PING"):
        await ws_send_event(websocket, "PONG", {})
        return
    if is_client_frame(message, "PONG"):
        heartbeat_state.mark_pong_received()


async def heartbeat_loop(
    websocket: Any,
    *,
    heartbeat_state: HeartbeatState,
    interval_seconds: float,
    pong_timeout_seconds: float,
    max_missed_pongs: int = 2,
) -> None:
    idle_seconds = max(interval_seconds - pong_timeout_seconds, 0.0)
    while True:
        await ws_send_event(websocket, "PING", {})
        heartbeat_state.mark_ping_sent()
        if not await heartbeat_state.wait_for_pong(timeout_seconds=pong_timeout_seconds):
            if heartbeat_state.missed_pong_count >= max_missed_pongs:
                logger.info("closing socket after %d missed pongs", heartbeat_state.missed_pong_count)
                await websocket.close(code=WS_CLOSE_HEARTBEAT_TIMEOUT, reason="HEARTBEAT_TIMEOUT")
                return
        if idle_seconds > 0:
            await asyncio.sleep(idle_seconds)


async def close_on_token_expiry(websocket: Any, *, expire_epoch: int) -> None:
    now_ts = int(datetime.now(timezone.utc).timestamp())
    await asyncio.sleep(max(float(expire_epoch - now_ts), 0.0))
    try:
        await websocket.close(code=WS_CLOSE_UNAUTHORIZED, reason="UNAUTHORIZED")
    except RuntimeError:
        return


async def close_when_finished(websocket: Any, companion: Coroutine[Any, Any, Any]) -> None:
    """Run `companion`; once it stops on its own, the socket is closed with 1011."""
    try:
        await companion
    except Exception:
        logger.warning("socket companion failed", exc_info=True)
    else:
        logger.info("socket companion finished")
    try:
        await websocket.close(code=WS_CLOSE_UPSTREAM, reason="UPSTREAM_ERROR")
    except RuntimeError:
        return


async def ws_message_loop(
    websocket: Any,
    *,
    interval_seconds: float = 30.0,
    pong_timeout_seconds: float = 10.0,
    token_expire_epoch_value: int | None = None,
    companions: Sequence[Coroutine[Any, Any, Any]] = (),
) -> None:
    """Receive until the client disconnects, running heartbeat and `companions` alongside."""
    heartbeat_state = HeartbeatState()
    tasks: list[asyncio.Task[Any]] = [
        asyncio.create_task(
            heartbeat_loop(
                websocket,
                heartbeat_state=heartbeat_state,
                interval_seconds=interval_seconds,
                pong_timeout_seconds=pong_timeout_seconds,
            )
        )
    ]
    if token_expire_epoch_value is not None:
        tasks.append(asyncio.create_task(close_on_token_expiry(websocket, expire_epoch=token_expire_epoch_value)))
    tasks.extend(asyncio.create_task(close_when_finished(websocket, companion)) for companion in companions)
    try:
        while True:
            message = await websocket.receive_text()
            await handle_client_message(websocket=websocket, heartbeat_state=heartbeat_state, message=message)
    except WebSocketDisconnect:
        return
    finally:
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.warning("socket background task failed", exc_info=True)
