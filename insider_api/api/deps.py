"""Dependency helpers shared by API routers."""

from __future__ import annotations

import random

from fastapi import Header
from fastapi import Request

from insider_api.auth.errors import raise_token_expired
from insider_api.auth.errors import raise_token_invalid
from insider_api.core.config import Settings
from insider_api.core.tokens import AccessTokenExpiredError
from insider_api.core.tokens import AccessTokenInvalidError
from insider_api.core.tokens import resolve_user
from insider_engine.clock import Clock
from insider_engine.store import RoomStore
from insider_engine.topics import TopicProvider


def app_settings(request: Request) -> Settings:
    return request.app.state.settings


def room_store(request: Request) -> RoomStore:
    return request.app.state.store


def topic_provider(request: Request) -> TopicProvider:
    return request.app.state.topic_provider


def app_clock(request: Request) -> Clock:
    return request.app.state.clock


def app_rng(request: Request) -> random.Random:
    return request.app.state.rng


def me(settings: Settings, access_token: str) -> str:
    """Return the user id behind a valid access token."""
    try:
        return resolve_user(access_token, secret=settings.insider_jwt_secret)
    except AccessTokenExpiredError:
        raise_token_expired()
    except AccessTokenInvalidError:
        raise_token_invalid()


def require_current_user(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    """Read and validate Bearer access token from Authorization header."""
    if authorization is None:
        raise_token_invalid()

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise_token_invalid()
    return me(app_settings(request), token)
