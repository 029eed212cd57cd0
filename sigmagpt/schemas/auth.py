"""Request/response models for the auth routes."""
from typing import Optional

from sigmagpt.schemas.base import CamelModel


class RegisterRequest(CamelModel):
    # Optional so missing fields reach auth_service validation as a 400
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserPublic(CamelModel):
    """User record without the password hash."""
    id: int
    name: str
    email: str
    role: str


class AuthResponse(CamelModel):
    message: str
    user: UserPublic


class MessageOnly(CamelModel):
    message: str
