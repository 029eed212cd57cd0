"""Request/response models for chat and thread routes."""
from datetime import datetime
from typing import Optional

from sigmagpt.schemas.base import CamelModel


class MessageRead(CamelModel):
    id: int
    user_id: int
    thread_id: str
    role: str
    content: str
    created_at: datetime


class ThreadRead(CamelModel):
    id: int
    thread_id: str
    title: str
    user_id: int
    created_at: datetime
    updated_at: datetime


class ThreadDetail(ThreadRead):
    messages: list[MessageRead]


class ChatRequest(CamelModel):
    message: Optional[str] = None
    thread_id: Optional[str] = None


class ChatResponse(CamelModel):
    reply: str
    history: list[MessageRead]


class ThreadCreate(CamelModel):
    thread_id: Optional[str] = None
    title: Optional[str] = None


class ThreadDeleted(CamelModel):
    success: bool = True
    message: str
    thread_id: str
    deleted_messages: int


class ThreadsCleared(CamelModel):
    success: bool = True
    message: str
    deleted: int


class VoiceResponse(CamelModel):
    user_text: str
    text: str
    language: str
    audio_url: str
