"""Shared fixtures: in-memory database, stubbed OpenAI clients, HTTP client."""
import os
import tempfile

# Configure before any sigmagpt import reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["PASSWORD_HASH_ROUNDS"] = "1000"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="sigmagpt-uploads-")
os.environ["UPLOAD_CLEANUP_DELAY"] = "0"
os.environ["ENVIRONMENT"] = "development"
os.environ["BASE_URL"] = "http://localhost:8080"
os.environ["CHAT_HISTORY_WINDOW"] = "0"

from pathlib import Path
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from sigmagpt.core.deps import get_completion_client, get_voice_client
from sigmagpt.core.exceptions import UpstreamError
from sigmagpt.database import engine, init_db
from sigmagpt.main import app

PASSWORD = "secret123"


class StubCompletion:
    """Stands in for CompletionClient; records every call."""

    def __init__(self, reply: Optional[str] = "Hi there"):
        self.reply = reply
        self.error: Optional[str] = None
        self.calls: list = []

    def complete(self, messages):
        self.calls.append(messages)
        if self.error:
            raise UpstreamError(self.error)
        return self.reply


class StubVoice:
    """Stands in for VoiceClient."""

    def __init__(self, transcript: str = "What is the weather", reply: str = "Sunny today."):
        self.transcript = transcript
        self.reply_text = reply
        self.error: Optional[str] = None
        self.transcribed: list = []
        self.synthesized: list = []

    def transcribe(self, audio_path: Path) -> str:
        if self.error:
            raise UpstreamError(self.error)
        self.transcribed.append(audio_path)
        return self.transcript

    def reply(self, text: str) -> str:
        return self.reply_text

    def synthesize(self, text: str, destination: Path) -> None:
        self.synthesized.append((text, destination))
        destination.write_bytes(b"ID3fake-mp3")


@pytest.fixture(autouse=True)
def reset_db():
    SQLModel.metadata.drop_all(engine)
    init_db(engine)
    yield


@pytest.fixture
def session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def completion():
    return StubCompletion()


@pytest.fixture
def voice():
    return StubVoice()


@pytest.fixture
def client(completion, voice):
    app.dependency_overrides[get_completion_client] = lambda: completion
    app.dependency_overrides[get_voice_client] = lambda: voice
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def register(client, email="alice@example.com", name="Alice", password=PASSWORD):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )


@pytest.fixture
def alice(client):
    """Client logged in as alice (tokens in its cookie jar)."""
    response = register(client)
    assert response.status_code == 201
    return response.json()["user"]


@pytest.fixture
def make_client(completion, voice):
    """Extra independent clients, e.g. for a second user."""
    clients = []

    def factory():
        app.dependency_overrides[get_completion_client] = lambda: completion
        app.dependency_overrides[get_voice_client] = lambda: voice
        test_client = TestClient(app)
        clients.append(test_client)
        return test_client

    yield factory
    for test_client in clients:
        test_client.close()
