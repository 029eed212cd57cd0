"""Thread management routes.

Provides:
- GET /api/thread - List the caller's threads, newest first
- POST /api/thread - Create a thread (idempotent per owner)
- DELETE /api/thread/clear?confirm=true - Delete all of the caller's threads
- GET /api/thread/{thread_id} - Thread with its messages
- DELETE /api/thread/{thread_id} - Delete thread and messages
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlmodel import Session

from sigmagpt.core.deps import AuthenticatedUser, get_current_user, get_db
from sigmagpt.core.exceptions import ServiceError
from sigmagpt.schemas.conversation import (
    MessageRead,
    ThreadCreate,
    ThreadDeleted,
    ThreadDetail,
    ThreadRead,
    ThreadsCleared,
)
from sigmagpt.services import thread_service

router = APIRouter(prefix="/api/thread", tags=["threads"])


@router.get("", response_model=list[ThreadRead])
def list_threads(
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> list[ThreadRead]:
    threads = thread_service.list_threads(session, current_user.user_id)
    return [ThreadRead.model_validate(thread) for thread in threads]


@router.post("", response_model=ThreadRead, status_code=status.HTTP_201_CREATED)
def create_thread(
    data: ThreadCreate,
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ThreadRead:
    """
    Persist an empty thread before chatting in it.

    Returns the existing thread unchanged if the caller already owns it.

    Raises:
        HTTPException: 400 if threadId or title is missing
        HTTPException: 409 if threadId belongs to another user
    """
    try:
        thread = thread_service.create_thread(
            session, current_user.user_id, data.thread_id, data.title
        )
    except ServiceError as e:
        raise e.to_http()
    return ThreadRead.model_validate(thread)


# Registered before /{thread_id} so "clear" is not taken as an id
@router.delete("/clear", response_model=ThreadsCleared)
def clear_threads(
    confirm: bool = Query(default=False),
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ThreadsCleared:
    """
    Delete every thread and message of the caller.

    Raises:
        HTTPException: 400 unless confirm=true is passed
    """
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Clearing all chats requires confirm=true",
        )
    deleted = thread_service.clear_all_threads(session, current_user.user_id)
    return ThreadsCleared(message="All chats cleared successfully.", deleted=deleted)


@router.get("/{thread_id}", response_model=ThreadDetail)
def get_thread(
    thread_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ThreadDetail:
    """
    Raises:
        HTTPException: 404 if not found or not owned
    """
    try:
        thread, messages = thread_service.get_thread(session, current_user.user_id, thread_id)
    except ServiceError as e:
        raise e.to_http()

    return ThreadDetail(
        **ThreadRead.model_validate(thread).model_dump(),
        messages=[MessageRead.model_validate(msg) for msg in messages],
    )


@router.delete("/{thread_id}", response_model=ThreadDeleted)
def delete_thread(
    thread_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    session: Session = Depends(get_db),
) -> ThreadDeleted:
    """
    Delete a thread and all its messages.

    Raises:
        HTTPException: 404 if not found or not owned
    """
    thread_id = thread_id.strip()
    try:
        deleted = thread_service.delete_thread(session, current_user.user_id, thread_id)
    except ServiceError as e:
        raise e.to_http()

    return ThreadDeleted(
        message="Thread deleted successfully",
        thread_id=thread_id,
        deleted_messages=deleted,
    )
