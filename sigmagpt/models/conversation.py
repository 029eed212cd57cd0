"""Thread and Message SQLModel definitions.

Models:
- Thread: conversation container keyed by a client-generated thread_id
- Message: single turn in a thread
"""
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from sigmagpt.models.base import utc_now


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Thread(SQLModel, table=True):
    """
    Conversation thread.

    Ownership: each thread belongs to exactly one user via user_id.
    thread_id is unique across all users.
    """
    __tablename__ = "thread"

    id: Optional[int] = Field(default=None, primary_key=True)
    thread_id: str = Field(max_length=255, unique=True, index=True, nullable=False)
    title: str = Field(max_length=255, nullable=False)
    user_id: int = Field(index=True, nullable=False)
    created_at: datetime = Field(default_factory=utc_now, index=True)
    updated_at: datetime = Field(default_factory=utc_now)


class Message(SQLModel, table=True):
    """
    Message in a thread.

    No foreign key to thread: the user turn is written before a new
    thread row exists. The (user_id, thread_id) pairing is enforced by
    thread_service and chat_service.
    """
    __tablename__ = "message"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(index=True, nullable=False)
    thread_id: str = Field(max_length=255, index=True, nullable=False)
    role: str = Field(max_length=20)  # "user" or "assistant"
    content: str = Field()
    created_at: datetime = Field(default_factory=utc_now)
