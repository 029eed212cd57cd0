"""Chat service layer.

Handles:
- Completion calls to the OpenAI API
- Message storage (user + assistant)
- Lazy thread creation on the first message of a thread
"""
from dataclasses import dataclass
from typing import Dict, Optional
import logging

from openai import APIError, OpenAI
from sqlmodel import Session

from sigmagpt.config import settings
from sigmagpt.core.exceptions import ConflictError, InvalidInputError, UpstreamError
from sigmagpt.models.conversation import Message, MessageRole
from sigmagpt.services import thread_service

logger = logging.getLogger(__name__)

NO_REPLY = "No reply"


class CompletionClient:
    """Thin wrapper over the OpenAI chat completions API."""

    def __init__(self, client: Optional[OpenAI] = None):
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not settings.OPENAI_API_KEY:
                logger.error("OPENAI_API_KEY is not configured")
                raise UpstreamError("Server misconfiguration: missing API key")
            self._client = OpenAI(api_key=settings.OPENAI_API_KEY)
        return self._client

    def complete(self, messages: list[Dict[str, str]]) -> Optional[str]:
        """
        Request one completion.

        Args:
            messages: OpenAI-format messages, oldest first

        Returns:
            Reply text, or None when the payload has no usable choice

        Raises:
            UpstreamError: non-success status, network error, timeout,
                or an unparseable response
        """
        kwargs = {}
        if settings.OPENAI_TIMEOUT is not None:
            kwargs["timeout"] = settings.OPENAI_TIMEOUT
        try:
            response = self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=messages,
                max_tokens=settings.OPENAI_MAX_TOKENS,
                temperature=settings.OPENAI_TEMPERATURE,
                **kwargs,
            )
        except APIError as e:
            logger.warning(f"OpenAI API error: {e.message}")
            raise UpstreamError(f"OpenAI API error: {e.message}") from e

        if not response.choices:
            return None
        return response.choices[0].message.content


@dataclass
class ChatResult:
    reply: str
    user_message: Message
    assistant_message: Message


class ChatService:
    """Runs one chat turn: store, complete, store, ensure thread."""

    def __init__(self, completion: CompletionClient, history_window: Optional[int] = None):
        self.completion = completion
        self.history_window = (
            settings.CHAT_HISTORY_WINDOW if history_window is None else history_window
        )

    def send_message(
        self,
        session: Session,
        user_id: int,
        thread_id: Optional[str],
        message_text: Optional[str],
    ) -> ChatResult:
        """
        Process one user message.

        Flow:
        1. Validate input and thread ownership
        2. Store user message
        3. Call the completion API
        4. Store assistant reply ("No reply" if empty or missing)
        5. Create the thread if this is its first message

        The user message stays stored when step 3 fails; there is no
        compensating delete.

        Raises:
            InvalidInputError: message or thread id missing
            ConflictError: thread id belongs to another user
            UpstreamError: completion call failed
        """
        thread_id = (thread_id or "").strip()
        if not message_text or not message_text.strip() or not thread_id:
            raise InvalidInputError("Message and threadId required")

        owner = thread_service.find_thread_owner(session, thread_id)
        if owner is not None and owner != user_id:
            raise ConflictError("Thread id already in use")

        user_msg = thread_service.append_message(
            session, user_id, thread_id, MessageRole.USER.value, message_text
        )

        messages = self._build_message_history(session, user_id, thread_id, user_msg)
        try:
            reply = self.completion.complete(messages)
        except UpstreamError:
            logger.warning(
                f"Completion failed for user={user_id}, thread={thread_id}; "
                f"user message {user_msg.id} kept"
            )
            raise

        reply = (reply or "").strip() or NO_REPLY
        bot_msg = thread_service.append_message(
            session, user_id, thread_id, MessageRole.ASSISTANT.value, reply
        )

        thread = thread_service.find_thread(session, user_id, thread_id)
        if thread is None:
            thread_service.create_thread(
                session,
                user_id,
                thread_id,
                thread_service.title_from_message(user_msg.content),
            )
        else:
            thread_service.touch_thread(session, thread)

        logger.info(
            f"Chat message processed: user={user_id}, thread={thread_id}, "
            f"message_id={user_msg.id}, response_id={bot_msg.id}"
        )
        return ChatResult(reply=reply, user_message=user_msg, assistant_message=bot_msg)

    def _build_message_history(
        self, session: Session, user_id: int, thread_id: str, latest: Message
    ) -> list[Dict[str, str]]:
        """
        Convert stored messages to OpenAI format.

        Only the latest message is sent unless history_window is positive,
        in which case up to that many earlier turns precede it.
        """
        messages = []
        if self.history_window > 0:
            previous = [
                msg
                for msg in thread_service.list_messages(session, user_id, thread_id)
                if msg.id != latest.id
            ]
            for msg in previous[-self.history_window:]:
                messages.append({"role": msg.role, "content": msg.content})

        messages.append({"role": "user", "content": latest.content})
        return messages
