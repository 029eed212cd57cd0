"""Thread and message persistence.

Every query filters on the caller's user id. A thread owned by another
user is reported exactly like a missing one.
Thread ids are trimmed on every lookup, matching how they are stored.
"""
import logging
from typing import Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sigmagpt.core.exceptions import ConflictError, InvalidInputError, NotFoundError
from sigmagpt.models.base import utc_now
from sigmagpt.models.conversation import Message, MessageRole, Thread

logger = logging.getLogger(__name__)

THREAD_NOT_FOUND = "Thread not found"
TITLE_MAX_LENGTH = 255
TITLE_WORDS = 5


def title_from_message(message: str) -> str:
    """First five words of the message, used to name a new thread."""
    title = " ".join(message.split()[:TITLE_WORDS])
    return title[:TITLE_MAX_LENGTH] or "New chat"


def list_threads(session: Session, user_id: int) -> list[Thread]:
    """All threads of the user, newest first."""
    statement = (
        select(Thread)
        .where(Thread.user_id == user_id)
        .order_by(Thread.created_at.desc(), Thread.id.desc())
    )
    return list(session.exec(statement).all())


def find_thread(session: Session, user_id: int, thread_id: str) -> Optional[Thread]:
    thread_id = thread_id.strip()
    statement = select(Thread).where(
        Thread.thread_id == thread_id,
        Thread.user_id == user_id,
    )
    return session.exec(statement).first()


def find_thread_owner(session: Session, thread_id: str) -> Optional[int]:
    """Owner of a thread id across all users, or None if unused."""
    thread_id = thread_id.strip()
    statement = select(Thread.user_id).where(Thread.thread_id == thread_id)
    return session.exec(statement).first()


def create_thread(session: Session, user_id: int, thread_id: Optional[str], title: Optional[str]) -> Thread:
    """
    Create a thread, or return the caller's existing one unchanged.

    Raises:
        InvalidInputError: thread_id or title missing
        ConflictError: thread_id already belongs to another user
    """
    thread_id = (thread_id or "").strip()
    title = (title or "").strip()
    if not thread_id or not title:
        raise InvalidInputError("ThreadId and title required")

    existing = find_thread(session, user_id, thread_id)
    if existing:
        return existing

    owner = find_thread_owner(session, thread_id)
    if owner is not None:
        raise ConflictError("Thread id already in use")

    thread = Thread(thread_id=thread_id, title=title[:TITLE_MAX_LENGTH], user_id=user_id)
    session.add(thread)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        # A concurrent request may have created it for this same user
        existing = find_thread(session, user_id, thread_id)
        if existing:
            return existing
        raise ConflictError("Thread id already in use")
    session.refresh(thread)
    return thread


def list_messages(session: Session, user_id: int, thread_id: str) -> list[Message]:
    """Messages of one thread, oldest first; insertion order breaks ties."""
    thread_id = thread_id.strip()
    statement = (
        select(Message)
        .where(Message.user_id == user_id, Message.thread_id == thread_id)
        .order_by(Message.created_at, Message.id)
    )
    return list(session.exec(statement).all())


def get_thread(session: Session, user_id: int, thread_id: str) -> tuple[Thread, list[Message]]:
    """
    Thread plus its messages.

    Raises:
        NotFoundError: missing, or owned by another user
    """
    thread = find_thread(session, user_id, thread_id)
    if not thread:
        raise NotFoundError(THREAD_NOT_FOUND)
    return thread, list_messages(session, user_id, thread_id)


def count_messages(session: Session, user_id: int, thread_id: str) -> int:
    thread_id = thread_id.strip()
    statement = select(func.count()).select_from(Message).where(
        Message.user_id == user_id,
        Message.thread_id == thread_id,
    )
    return session.exec(statement).one()


def delete_thread(session: Session, user_id: int, thread_id: str) -> int:
    """
    Delete a thread and its messages in one transaction.

    Returns:
        Number of messages removed

    Raises:
        NotFoundError: missing, or owned by another user
    """
    thread_id = thread_id.strip()
    thread = find_thread(session, user_id, thread_id)
    if not thread:
        raise NotFoundError(THREAD_NOT_FOUND)

    result = session.exec(
        delete(Message).where(
            Message.user_id == user_id,
            Message.thread_id == thread_id,
        )
    )
    session.delete(thread)
    session.commit()

    logger.info(
        f"Thread deleted: user={user_id}, thread={thread_id}, messages={result.rowcount}"
    )
    return result.rowcount


def clear_all_threads(session: Session, user_id: int) -> int:
    """
    Delete every thread and message of the user. Irreversible.

    Returns:
        Number of threads removed (0 if the user had none)
    """
    session.exec(delete(Message).where(Message.user_id == user_id))
    result = session.exec(delete(Thread).where(Thread.user_id == user_id))
    session.commit()

    logger.info(f"Cleared {result.rowcount} threads for user={user_id}")
    return result.rowcount


def append_message(session: Session, user_id: int, thread_id: str, role: str, content: Optional[str]) -> Message:
    """
    Insert one message with a server-assigned timestamp.

    Raises:
        InvalidInputError: empty content after trimming, or unknown role
    """
    content = (content or "").strip()
    if not content:
        raise InvalidInputError("Message content cannot be empty")
    try:
        role = MessageRole(role).value
    except ValueError:
        raise InvalidInputError(f"Invalid message role: {role}")

    message = Message(
        user_id=user_id,
        thread_id=thread_id,
        role=role,
        content=content,
    )
    session.add(message)
    session.commit()
    session.refresh(message)
    return message


def touch_thread(session: Session, thread: Thread) -> None:
    """Bump updated_at after new activity in the thread."""
    thread.updated_at = utc_now()
    session.add(thread)
    session.commit()
