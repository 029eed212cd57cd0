"""Token issuance/verification and password hashing.

Access tokens: 15 minutes, signed with ACCESS_TOKEN_SECRET, claims
{userId, role}. Refresh tokens: 7 days, signed with REFRESH_TOKEN_SECRET,
claims {userId, tokenType: "refresh"}. Neither is persisted server-side.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from passlib.context import CryptContext

from sigmagpt.config import settings
from sigmagpt.core.exceptions import AuthenticationError

ALGORITHM = "HS256"
REFRESH_TOKEN_TYPE = "refresh"

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=settings.PASSWORD_HASH_ROUNDS,
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        # Unrecognized hash format
        return False


def _sign(claims: Dict[str, Any], secret: str, lifetime: timedelta, now: Optional[datetime] = None) -> str:
    issued = now or datetime.now(timezone.utc)
    payload = {**claims, "iat": issued, "exp": issued + lifetime}
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def issue_access_token(user, now: Optional[datetime] = None) -> str:
    """Sign {userId, role}; expires after ACCESS_TOKEN_EXPIRE_MINUTES."""
    return _sign(
        {"userId": str(user.id), "role": user.role},
        settings.ACCESS_TOKEN_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        now,
    )


def issue_refresh_token(user, now: Optional[datetime] = None) -> str:
    """Sign {userId, tokenType: refresh}; expires after REFRESH_TOKEN_EXPIRE_DAYS."""
    return _sign(
        {"userId": str(user.id), "tokenType": REFRESH_TOKEN_TYPE},
        settings.REFRESH_TOKEN_SECRET,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        now,
    )


def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={"require": ["exp", "userId"]},
        )
    except jwt.InvalidTokenError as e:
        # ExpiredSignatureError is a subclass
        raise AuthenticationError("Invalid or expired token") from e
    return payload


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Decode an access token.

    Raises:
        AuthenticationError: bad signature, malformed, or expired
    """
    payload = _decode(token, settings.ACCESS_TOKEN_SECRET)
    if payload.get("tokenType") == REFRESH_TOKEN_TYPE:
        raise AuthenticationError("Invalid or expired token")
    return payload


def verify_refresh_token(token: str) -> Dict[str, Any]:
    """
    Decode a refresh token.

    Raises:
        AuthenticationError: bad signature, malformed, expired, or not a refresh token
    """
    payload = _decode(token, settings.REFRESH_TOKEN_SECRET)
    if payload.get("tokenType") != REFRESH_TOKEN_TYPE:
        raise AuthenticationError("Invalid refresh token")
    return payload
