"""WebSocket wire protocol helpers."""

from __future__ import annotations

import json
from typing import Any

WS_PROTOCOL_VERSION = 1

WS_CLOSE_UNAUTHORIZED = 4401
WS_CLOSE_NOT_MEMBER = 4403
WS_CLOSE_HEARTBEAT_TIMEOUT = 4408
WS_CLOSE_UPSTREAM = 1011


def ws_event(event_type: str, payload: dict[str, Any]) -> dict[str, Any]:
    return {"v": WS_PROTOCOL_VERSION, "type": event_type, "payload": payload}


async def ws_send_event(websocket: Any, event_type: str, payload: dict[str, Any]) -> None:
    message = ws_event(event_type, payload)
    if hasattr(websocket, "send_json"):
        await websocket.send_json(message)
        return
    await websocket.send_text(json.dumps(message))


def is_client_frame(message: str, event_type: str) -> bool:
    """Accept a bare `PING`/`PONG` string or a JSON frame of that type."""
    if message == event_type:
        return True
    try:
        payload = json.loads(message)
    except json.JSONDecodeError:
        return False
    return isinstance(payload, dict) and payload.get("type") == event_type
