"""Chat endpoint routes.

Provides:
- POST /api/chat - Send a message, get the assistant reply
- GET /api/history/{thread_id} - Messages of a thread, oldest first
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from sigmagpt.core.deps import (
    AuthenticatedUser,
    get_completion_client,
    get_current_user,
    get_db,
)
from sigmagpt.core.exceptions import ServiceError
from sigmagpt.schemas.conversation import ChatRequest, ChatResponse, MessageRead
from sigmagpt.services import thread_service
from sigmagpt.services.chat_service import ChatService, CompletionClient

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat", response_model=ChatResponse)
def send_chat_message(
    request: ChatRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
    completion: CompletionClient = Depends(get_completion_client),
) -> ChatResponse:
    """
    Send a message to the assistant.

    Flow:
    1. Validate message and threadId
    2. Store user message
    3. Call OpenAI with the message
    4. Store assistant reply
    5. Create the thread if it is new
    6. Return reply and the two stored messages

    Raises:
        HTTPException: 400 if message or threadId is missing
        HTTPException: 409 if threadId belongs to another user
        HTTPException: 500 if the OpenAI call failed (user message is kept)
    """
    chat_service = ChatService(completion)
    try:
        result = chat_service.send_message(
            session,
            current_user.user_id,
            request.thread_id,
            request.message,
        )
    except ServiceError as e:
        raise e.to_http()

    return ChatResponse(
        reply=result.reply,
        history=[
            MessageRead.model_validate(result.user_message),
            MessageRead.model_validate(result.assistant_message),
        ],
    )


@router.get("/history/{thread_id}", response_model=list[MessageRead])
def get_history(
    thread_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[MessageRead]:
    """
    Messages the caller stored under thread_id.

    Raises:
        HTTPException: 404 if there are none
    """
    messages = thread_service.list_messages(session, current_user.user_id, thread_id)
    if not messages:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No messages found for this thread",
        )
    return [MessageRead.model_validate(msg) for msg in messages]
