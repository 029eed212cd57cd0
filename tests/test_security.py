from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from sigmagpt.config import settings
from sigmagpt.core.exceptions import AuthenticationError
from sigmagpt.core.security import (
    hash_password,
    issue_access_token,
    issue_refresh_token,
    verify_access_token,
    verify_password,
    verify_refresh_token,
)

USER = SimpleNamespace(id=42, role="user")


def test_access_token_carries_user_and_role():
    payload = verify_access_token(issue_access_token(USER))
    assert payload["userId"] == "42"
    assert payload["role"] == "user"
    assert payload["exp"] - payload["iat"] == 15 * 60


def test_refresh_token_is_typed_and_lasts_a_week():
    payload = verify_refresh_token(issue_refresh_token(USER))
    assert payload["userId"] == "42"
    assert payload["tokenType"] == "refresh"
    assert payload["exp"] - payload["iat"] == 7 * 24 * 3600


def test_access_token_expires_after_fifteen_minutes():
    issued = datetime.now(timezone.utc) - timedelta(minutes=15, seconds=5)
    token = issue_access_token(USER, now=issued)
    with pytest.raises(AuthenticationError):
        verify_access_token(token)


def test_tokens_are_not_interchangeable():
    with pytest.raises(AuthenticationError):
        verify_refresh_token(issue_access_token(USER))
    with pytest.raises(AuthenticationError):
        verify_access_token(issue_refresh_token(USER))


def test_tampered_and_garbage_tokens_rejected():
    forged = jwt.encode({"userId": "42", "role": "admin", "exp": 9999999999}, "wrong", algorithm="HS256")
    with pytest.raises(AuthenticationError):
        verify_access_token(forged)
    with pytest.raises(AuthenticationError):
        verify_access_token("not-a-jwt")


def test_refresh_token_without_type_rejected():
    token = jwt.encode(
        {"userId": "42", "exp": datetime.now(timezone.utc) + timedelta(days=1)},
        settings.REFRESH_TOKEN_SECRET,
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationError):
        verify_refresh_token(token)


def test_password_hash_is_salted_and_verifies():
    first = hash_password("secret123")
    second = hash_password("secret123")
    assert first != second
    assert "secret123" not in first
    assert verify_password("secret123", first)
    assert not verify_password("secret124", first)


def test_unknown_hash_format_does_not_verify():
    assert not verify_password("secret123", "plaintext")
