"""Authentication routes.

Provides:
- POST /api/auth/register - Create account, set token cookies
- POST /api/auth/login - Check credentials, set token cookies
- POST /api/auth/refresh - Rotate both cookies using the refresh cookie
- POST /api/auth/logout - Clear both cookies
- GET /api/auth/me - Current user profile
"""
import logging
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlmodel import Session

from sigmagpt.config import settings
from sigmagpt.core.deps import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    AuthenticatedUser,
    get_current_user,
    get_db,
)
from sigmagpt.core.exceptions import AuthenticationError, NotFoundError, ServiceError
from sigmagpt.core.security import (
    issue_access_token,
    issue_refresh_token,
    verify_refresh_token,
)
from sigmagpt.models.user import User
from sigmagpt.schemas.auth import (
    AuthResponse,
    LoginRequest,
    MessageOnly,
    RegisterRequest,
    UserPublic,
)
from sigmagpt.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _cookie_options() -> dict:
    """Secure + SameSite=None in production, Lax over plain HTTP in development."""
    return {
        "httponly": True,
        "secure": settings.is_production,
        "samesite": "none" if settings.is_production else "lax",
        "path": "/",
    }


def set_auth_cookies(response: Response, user: User) -> None:
    options = _cookie_options()
    response.set_cookie(ACCESS_COOKIE, issue_access_token(user), **options)
    response.set_cookie(REFRESH_COOKIE, issue_refresh_token(user), **options)


def clear_auth_cookies(response: Response) -> None:
    options = _cookie_options()
    response.delete_cookie(ACCESS_COOKIE, **options)
    response.delete_cookie(REFRESH_COOKIE, **options)


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    data: RegisterRequest,
    response: Response,
    session: Session = Depends(get_db),
) -> AuthResponse:
    """
    Register a new user and log them in.

    Raises:
        HTTPException: 400 on missing/invalid fields, 409 if the email is taken
    """
    try:
        user = auth_service.register(session, data.name, data.email, data.password)
    except ServiceError as e:
        raise e.to_http()

    set_auth_cookies(response, user)
    return AuthResponse(message="Registration successful", user=UserPublic.model_validate(user))


@router.post("/login", response_model=AuthResponse)
def login(
    data: LoginRequest,
    response: Response,
    session: Session = Depends(get_db),
) -> AuthResponse:
    """
    Authenticate with email and password.

    Raises:
        HTTPException: 400 on missing fields, 401 on bad credentials
    """
    try:
        user = auth_service.login(session, data.email, data.password)
    except ServiceError as e:
        raise e.to_http()

    set_auth_cookies(response, user)
    return AuthResponse(message="Login successful", user=UserPublic.model_validate(user))


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    response: Response,
    refresh_token: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    session: Session = Depends(get_db),
) -> AuthResponse:
    """
    Issue a new access/refresh pair from a valid refresh cookie.

    Raises:
        HTTPException: 401 if the cookie is missing, invalid, expired,
            or names a user that no longer exists
    """
    try:
        if not refresh_token:
            raise AuthenticationError("No refresh token")
        payload = verify_refresh_token(refresh_token)
        try:
            user = auth_service.get_by_id(session, int(payload["userId"]))
        except (NotFoundError, ValueError):
            raise AuthenticationError("User not found")
    except AuthenticationError as e:
        logger.warning(f"Refresh rejected: {e.detail}")
        raise e.to_http()

    set_auth_cookies(response, user)
    return AuthResponse(message="Token refreshed", user=UserPublic.model_validate(user))


@router.post("/logout", response_model=MessageOnly)
def logout(response: Response) -> MessageOnly:
    """Clear both token cookies. Tokens already issued stay valid until expiry."""
    clear_auth_cookies(response)
    return MessageOnly(message="Logged out")


@router.get("/me", response_model=UserPublic)
def me(
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> UserPublic:
    """
    Profile of the authenticated user.

    Raises:
        HTTPException: 401 without a valid token, 404 if the user was deleted
    """
    try:
        user = auth_service.get_by_id(session, current_user.user_id)
    except ServiceError as e:
        raise e.to_http()
    return UserPublic.model_validate(user)
