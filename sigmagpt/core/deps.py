"""FastAPI dependencies: database session, authenticated user, remote clients."""
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from fastapi import HTTPException, Request, status
from sqlmodel import Session

from sigmagpt.core.exceptions import AuthenticationError
from sigmagpt.core.security import verify_access_token
from sigmagpt.database import get_session
from sigmagpt.services.chat_service import CompletionClient
from sigmagpt.services.voice_service import VoiceClient

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity decoded from a verified access token."""
    user_id: int
    role: str
    name: Optional[str] = None


def get_db() -> Iterator[Session]:
    yield from get_session()


def extract_token(request: Request) -> Optional[str]:
    """Cookie first, then `Authorization: Bearer <token>`."""
    token = request.cookies.get(ACCESS_COOKIE)
    if token:
        return token
    header = request.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        return header.split(None, 1)[1].strip() or None
    return None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(request: Request) -> AuthenticatedUser:
    """
    Verify the request's access token and attach the identity.

    Runs before any route logic and never touches the store.

    Raises:
        HTTPException: 401 if no credential, or if it is invalid or expired
    """
    token = extract_token(request)
    if not token:
        raise _unauthorized("No token provided")

    try:
        payload = verify_access_token(token)
        user = AuthenticatedUser(
            user_id=int(payload["userId"]),
            role=payload.get("role", "user"),
            name=payload.get("name"),
        )
    except (AuthenticationError, ValueError) as e:
        logger.warning(f"Rejected access token on {request.url.path}: {e}")
        raise _unauthorized("Invalid or expired token")

    request.state.user = user
    return user


def get_completion_client() -> CompletionClient:
    """Completion client for the chat orchestrator; overridden in tests."""
    return CompletionClient()


def get_voice_client() -> VoiceClient:
    """Speech client for the voice pipeline; overridden in tests."""
    return VoiceClient()

