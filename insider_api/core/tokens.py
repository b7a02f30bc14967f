"""JWT access tokens identifying room users."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone
from typing import Any

import jwt

ALGORITHM = "HS256"


class AccessTokenError(ValueError):
    """Base access token error."""


class AccessTokenInvalidError(AccessTokenError):
    """Raised when an access token cannot be decoded or is malformed."""


class AccessTokenExpiredError(AccessTokenError):
    """Raised when an access token is expired."""


def create_access_token(*, user_id: str, secret: str, now: datetime, expires_in_seconds: int) -> str:
    """Create a JWT access token carrying the user id in `sub`."""
    exp = int((now + timedelta(seconds=expires_in_seconds)).timestamp())
    payload = {"sub": str(user_id), "exp": exp}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, *, secret: str, now: datetime) -> dict[str, Any]:
    """Decode and validate an access token against `now`."""
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"verify_exp": False},
        )
    except jwt.InvalidTokenError as exc:
        raise AccessTokenInvalidError("invalid access token") from exc

    exp = payload.get("exp")
    if not isinstance(exp, int):
        raise AccessTokenInvalidError("missing or invalid exp")
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        raise AccessTokenInvalidError("missing or invalid sub")

    now_ts = int(now.astimezone(timezone.utc).timestamp())
    if now_ts >= exp:
        raise AccessTokenExpiredError("access token expired")

    return payload


def resolve_user(token: str, *, secret: str, now: datetime | None = None) -> str:
    """Map a bearer credential to the stable user id it was issued for."""
    payload = decode_access_token(token, secret=secret, now=now or datetime.now(timezone.utc))
    return str(payload["sub"])


def token_expiry_epoch(token: str, *, secret: str) -> int | None:
    try:
        payload = decode_access_token(token, secret=secret, now=datetime.now(timezone.utc))
    except AccessTokenError:
        return None
    return int(payload["exp"])
