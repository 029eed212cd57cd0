"""Voice route: POST /api/voice (multipart field `audio`)."""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, UploadFile

from sigmagpt.config import settings
from sigmagpt.core.deps import AuthenticatedUser, get_current_user, get_voice_client
from sigmagpt.core.exceptions import ServiceError
from sigmagpt.schemas.conversation import VoiceResponse
from sigmagpt.services import voice_service
from sigmagpt.services.voice_service import VoiceClient

router = APIRouter(prefix="/api", tags=["voice"])


@router.post("/voice", response_model=VoiceResponse)
def voice_chat(
    background_tasks: BackgroundTasks,
    audio: Optional[UploadFile] = File(default=None),
    current_user: AuthenticatedUser = Depends(get_current_user),
    client: VoiceClient = Depends(get_voice_client),
) -> VoiceResponse:
    """
    Transcribe recorded speech, answer it, and return a spoken reply.

    The uploaded recording is deleted shortly after the response is sent,
    the spoken reply after REPLY_AUDIO_RETENTION seconds.

    Raises:
        HTTPException: 400 if no audio file was sent
        HTTPException: 500 if transcription, completion or speech failed
    """
    try:
        result = voice_service.process_voice(
            client,
            audio.file if audio is not None else None,
            audio.filename if audio is not None else None,
        )
    except ServiceError as e:
        raise e.to_http()

    background_tasks.add_task(voice_service.schedule_cleanup, result.upload_path)
    background_tasks.add_task(
        voice_service.schedule_cleanup,
        result.speech_path,
        settings.REPLY_AUDIO_RETENTION,
    )
    return VoiceResponse(
        user_text=result.user_text,
        text=result.text,
        language=result.language,
        audio_url=result.audio_url,
    )
