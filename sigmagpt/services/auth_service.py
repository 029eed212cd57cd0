"""Identity store: registration, login and profile lookup."""
import logging
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sigmagpt.core.exceptions import (
    AuthenticationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
)
from sigmagpt.core.security import hash_password, verify_password
from sigmagpt.models.user import User, UserRole

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r".+@.+\..+")
MIN_PASSWORD_LENGTH = 6
# Same message for unknown email and wrong password
INVALID_CREDENTIALS = "Invalid credentials"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_by_email(session: Session, email: str) -> Optional[User]:
    statement = select(User).where(User.email == normalize_email(email))
    return session.exec(statement).first()


def register(session: Session, name: Optional[str], email: Optional[str], password: Optional[str]) -> User:
    """
    Create a user with role=user.

    Raises:
        InvalidInputError: missing field, malformed email, or short password
        ConflictError: email already registered (case-insensitive)
    """
    if not name or not name.strip() or not email or not email.strip() or not password:
        raise InvalidInputError("Missing fields")

    email = normalize_email(email)
    if not EMAIL_PATTERN.fullmatch(email):
        raise InvalidInputError("Please enter a valid email address")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    if get_by_email(session, email):
        raise ConflictError("Email already registered")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=UserRole.USER.value,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration
        session.rollback()
        raise ConflictError("Email already registered")
    session.refresh(user)

    logger.info(f"User registered: id={user.id}")
    return user


def login(session: Session, email: Optional[str], password: Optional[str]) -> User:
    """
    Check credentials.

    Raises:
        InvalidInputError: missing field
        AuthenticationError: unknown email or wrong password (same message)
    """
    if not email or not email.strip() or not password:
        raise InvalidInputError("Missing fields")

    user = get_by_email(session, email)
    if not user or not verify_password(password, user.password_hash):
        logger.warning("Failed login attempt")
        raise AuthenticationError(INVALID_CREDENTIALS)

    logger.info(f"User logged in: id={user.id}")
    return user


def get_by_id(session: Session, user_id: int) -> User:
    """
    Fetch a user; callers expose it through UserPublic, which omits the hash.

    Raises:
        NotFoundError: no such user
    """
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user
