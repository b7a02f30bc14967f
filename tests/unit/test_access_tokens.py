"""Access token contract tests."""

from __future__ import annotations

from datetime import datetime
from datetime import timedelta
from datetime import timezone

import jwt
import pytest

from insider_api.core.tokens import ALGORITHM
from insider_api.core.tokens import AccessTokenExpiredError
from insider_api.core.tokens import AccessTokenInvalidError
from insider_api.core.tokens import create_access_token
from insider_api.core.tokens import decode_access_token
from insider_api.core.tokens import resolve_user
from insider_api.core.tokens import token_expiry_epoch

SECRET = "unit-test-secret-key-32-bytes-minimum"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_access_jwt_contains_sub_and_exp() -> None:
    """Input: user 'u-1' token in valid window -> Output: payload includes sub/exp."""
    token = create_access_token(user_id="u-1", secret=SECRET, now=NOW, expires_in_seconds=60)

    payload = decode_access_token(token, secret=SECRET, now=NOW + timedelta(seconds=30))

    assert payload["sub"] == "u-1"
    assert payload["exp"] == int((NOW + timedelta(seconds=60)).timestamp())
    assert resolve_user(token, secret=SECRET, now=NOW) == "u-1"


def test_expired_token_is_rejected() -> None:
    token = create_access_token(user_id="u-1", secret=SECRET, now=NOW, expires_in_seconds=1)

    with pytest.raises(AccessTokenExpiredError):
        decode_access_token(token, secret=SECRET, now=NOW + timedelta(seconds=2))


def test_token_signed_with_other_secret_is_invalid() -> None:
    token = create_access_token(
        user_id="u-1",
        secret="another-secret-key-32-bytes-minimum",
        now=NOW,
        expires_in_seconds=60,
    )

    with pytest.raises(AccessTokenInvalidError):
        resolve_user(token, secret=SECRET, now=NOW)


@pytest.mark.parametrize(
    "claims",
    [
        {"exp": int(NOW.timestamp()) + 60},
        {"sub": "  ", "exp": int(NOW.timestamp()) + 60},
        {"sub": "u-1", "exp": "soon"},
    ],
)
def test_token_without_usable_claims_is_invalid(claims: dict[str, object]) -> None:
    token = jwt.encode(claims, SECRET, algorithm=ALGORITHM)

    with pytest.raises(AccessTokenInvalidError):
        decode_access_token(token, secret=SECRET, now=NOW)


def test_token_expiry_epoch_is_none_for_garbage() -> None:
    assert token_expiry_epoch("garbage", secret=SECRET) is None
    fresh = create_access_token(
        user_id="u-1",
        secret=SECRET,
        now=datetime.now(timezone.utc),
        expires_in_seconds=120,
    )
    assert isinstance(token_expiry_epoch(fresh, secret=SECRET), int)
