"""Voice pipeline: speech to text, chat reply, text to speech.

Uploads and synthesized replies share UPLOAD_DIR, which is served
statically under /uploads. Files are timestamp-named so concurrent
requests never collide.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
import logging
import re
import shutil
import threading
import time

from openai import APIError, OpenAI

from sigmagpt.config import settings
from sigmagpt.core.exceptions import InvalidInputError, UpstreamError

logger = logging.getLogger(__name__)

LANGUAGE = "en"
MIN_TRANSCRIPT_LENGTH = 2
UNCLEAR_AUDIO_REPLY = "I couldn't hear you clearly. Please say it again!"
NOT_UNDERSTOOD_REPLY = "Sorry, I didn't understand."
SYSTEM_PROMPT = (
    "You are SigmaGPT, an intelligent AI assistant. "
    "The user always speaks English. "
    "Always understand and reply ONLY in English. "
    "Keep answers clear, concise, and natural."
)


class VoiceClient:
    """OpenAI transcription, chat and speech calls used by the voice route."""

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

    def transcribe(self, audio_path: Path) -> str:
        try:
            with audio_path.open("rb") as audio:
                transcript = self.client.audio.transcriptions.create(
                    file=audio,
                    model=settings.TRANSCRIBE_MODEL,
                    response_format="text",
                    language=LANGUAGE,
                )
        except APIError as e:
            raise UpstreamError(f"Transcription failed: {e.message}") from e
        # response_format="text" yields a plain string
        return str(transcript or "").strip()

    def reply(self, text: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=settings.OPENAI_MODEL,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": text},
                ],
            )
        except APIError as e:
            raise UpstreamError(f"OpenAI API error: {e.message}") from e
        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    def synthesize(self, text: str, destination: Path) -> None:
        try:
            speech = self.client.audio.speech.create(
                model=settings.TTS_MODEL,
                voice=settings.TTS_VOICE,
                input=text,
            )
        except APIError as e:
            raise UpstreamError(f"Speech synthesis failed: {e.message}") from e
        destination.write_bytes(speech.content)


@dataclass
class VoiceResult:
    user_text: str
    text: str
    language: str
    audio_url: str
    upload_path: Path
    speech_path: Path


def upload_dir() -> Path:
    path = Path(settings.UPLOAD_DIR)
    path.mkdir(parents=True, exist_ok=True)
    return path


def _timestamp() -> int:
    return int(time.time() * 1000)


def _safe_filename(filename: Optional[str]) -> str:
    name = Path(filename or "audio").name
    return re.sub(r"[^A-Za-z0-9._-]", "_", name) or "audio"


def save_upload(stream: BinaryIO, filename: Optional[str]) -> Path:
    """Write an uploaded file to UPLOAD_DIR as <epoch-ms>-<name>."""
    path = upload_dir() / f"{_timestamp()}-{_safe_filename(filename)}"
    with path.open("wb") as out:
        shutil.copyfileobj(stream, out)
    return path


def audio_url(path: Path) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/uploads/{path.name}"


def remove_file(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


def schedule_cleanup(path: Path, delay: Optional[float] = None) -> None:
    """Delete an uploaded file after `delay` seconds (UPLOAD_CLEANUP_DELAY by default)."""
    delay = settings.UPLOAD_CLEANUP_DELAY if delay is None else delay
    if delay <= 0:
        remove_file(path)
        return
    timer = threading.Timer(delay, remove_file, args=(path,))
    timer.daemon = True
    timer.start()


def process_voice(client: VoiceClient, stream: Optional[BinaryIO], filename: Optional[str]) -> VoiceResult:
    """
    Transcribe an upload, answer it, and synthesize the answer.

    The caller schedules cleanup of both result.upload_path and
    result.speech_path.

    Raises:
        InvalidInputError: no audio file
        UpstreamError: any OpenAI call failed
    """
    if stream is None:
        raise InvalidInputError("No audio file received")

    upload_path = save_upload(stream, filename)
    try:
        user_text = client.transcribe(upload_path)
        logger.info(f"Transcribed {upload_path.name}: {len(user_text)} chars")

        if len(user_text) < MIN_TRANSCRIPT_LENGTH:
            text = UNCLEAR_AUDIO_REPLY
            speech_path = upload_dir() / f"fallback_{_timestamp()}.mp3"
        else:
            text = client.reply(user_text) or NOT_UNDERSTOOD_REPLY
            speech_path = upload_dir() / f"reply_{_timestamp()}.mp3"

        client.synthesize(text, speech_path)
    except UpstreamError:
        schedule_cleanup(upload_path)
        raise

    return VoiceResult(
        user_text=user_text,
        text=text,
        language=LANGUAGE,
        audio_url=audio_url(speech_path),
        upload_path=upload_path,
        speech_path=speech_path,
    )
