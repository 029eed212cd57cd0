"""SQLModel table definitions."""
from sigmagpt.models.conversation import Message, MessageRole, Thread
from sigmagpt.models.user import User, UserRole

__all__ = ["Message", "MessageRole", "Thread", "User", "UserRole"]
