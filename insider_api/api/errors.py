"""HTTP error mapping helpers for API routes."""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import HTTPException

from insider_api.auth.http import api_error
from insider_engine.errors import RoomError
from insider_engine.errors import UpstreamError

logger = logging.getLogger(__name__)


def raise_room_error(exc: RoomError) -> NoReturn:
    """Surface a room-domain error verbatim with its HTTP status."""
    if isinstance(exc, UpstreamError):
        logger.warning("upstream failure: %s", exc)
    raise HTTPException(
        status_code=exc.status_code,
        detail=api_error(code=exc.code, message=str(exc), detail=dict(exc.detail)),
    ) from exc
