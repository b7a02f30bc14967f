"""401 responses for bearer-token failures."""

from __future__ import annotations

from typing import NoReturn

from fastapi import HTTPException

from insider_api.auth.http import api_error

BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def _unauthorized(code: str, message: str) -> NoReturn:
    raise HTTPException(status_code=401, detail=api_error(code=code, message=message), headers=BEARER_CHALLENGE)


def raise_token_invalid() -> NoReturn:
    _unauthorized("AUTH_TOKEN_INVALID", "invalid or missing access token")


def raise_token_expired() -> NoReturn:
    _unauthorized("AUTH_TOKEN_EXPIRED", "access token expired")
