from types import SimpleNamespace

import httpx
import pytest
from openai import APIConnectionError
from sqlmodel import Session, create_engine

from conftest import StubCompletion, register
from sigmagpt.config import settings
from sigmagpt.core.deps import get_db
from sigmagpt.core.exceptions import ConflictError, InvalidInputError, UpstreamError
from sigmagpt.main import app
from sigmagpt.services import thread_service
from sigmagpt.services.chat_service import NO_REPLY, ChatService, CompletionClient


def test_chat_returns_reply_and_both_messages(client, alice, completion):
    response = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"})

    assert response.status_code == 200
    body = response.json()
    assert body["reply"] == "Hi there"
    user_msg, bot_msg = body["history"]
    assert (user_msg["role"], user_msg["content"]) == ("user", "Hello")
    assert (bot_msg["role"], bot_msg["content"]) == ("assistant", "Hi there")
    assert user_msg["threadId"] == bot_msg["threadId"] == "t1"
    assert user_msg["userId"] == alice["id"]
    assert completion.calls == [[{"role": "user", "content": "Hello"}]]


def test_history_after_chat_has_exactly_the_new_pair(client, alice):
    chat = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"}).json()

    history = client.get("/api/history/t1")

    assert history.status_code == 200
    assert history.json() == chat["history"]


def test_history_appends_in_order(client, alice, completion):
    client.post("/api/chat", json={"message": "first", "threadId": "t1"})
    completion.reply = "second reply"
    client.post("/api/chat", json={"message": "second", "threadId": "t1"})

    contents = [m["content"] for m in client.get("/api/history/t1").json()]

    assert contents == ["first", "Hi there", "second", "second reply"]


def test_thread_id_is_trimmed_on_every_route(client, alice):
    client.post("/api/chat", json={"message": "Hello", "threadId": " t1 "})

    assert [t["threadId"] for t in client.get("/api/thread").json()] == ["t1"]
    assert len(client.get("/api/history/%20t1%20").json()) == 2
    assert client.get("/api/thread/%20t1%20").json()["threadId"] == "t1"
    assert client.delete("/api/thread/%20t1%20").status_code == 200
    assert client.get("/api/history/t1").status_code == 404


def test_history_empty_thread_is_not_found(client, alice):
    response = client.get("/api/history/unknown")
    assert response.status_code == 404
    assert response.json()["detail"] == "No messages found for this thread"


def test_first_message_creates_titled_thread(client, alice):
    client.post(
        "/api/chat",
        json={"message": "How do I bake sourdough bread at home?", "threadId": "t1"},
    )

    [thread] = client.get("/api/thread").json()

    assert thread["threadId"] == "t1"
    assert thread["title"] == "How do I bake sourdough"


def test_existing_thread_keeps_its_title(client, alice):
    client.post("/api/thread", json={"threadId": "t1", "title": "Baking"})
    client.post("/api/chat", json={"message": "How do I bake bread?", "threadId": "t1"})

    assert client.get("/api/thread/t1").json()["title"] == "Baking"


@pytest.mark.parametrize(
    "payload",
    [{"threadId": "t1"}, {"message": "   ", "threadId": "t1"}, {"message": "Hello"}],
)
def test_chat_validation(client, alice, completion, payload):
    response = client.post("/api/chat", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"] == "Message and threadId required"
    assert completion.calls == []


def test_upstream_failure_keeps_user_message(client, alice, completion):
    completion.error = "OpenAI API error: rate limited"

    response = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"})

    assert response.status_code == 500
    assert response.json()["detail"] == "OpenAI API error: rate limited"
    history = client.get("/api/history/t1").json()
    assert [(m["role"], m["content"]) for m in history] == [("user", "Hello")]


@pytest.mark.parametrize("reply", ["", "   ", None])
def test_empty_reply_replaced_by_placeholder(client, alice, completion, reply):
    completion.reply = reply

    response = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"})

    assert response.json()["reply"] == NO_REPLY
    assert response.json()["history"][1]["content"] == NO_REPLY


def test_chat_into_another_users_thread_is_refused(client, alice, make_client, completion):
    client.post("/api/thread", json={"threadId": "t1", "title": "Alice"})
    bob = make_client()
    register(bob, email="bob@example.com", name="Bob")

    response = bob.post("/api/chat", json={"message": "Hi", "threadId": "t1"})

    assert response.status_code == 409
    assert completion.calls == []
    assert bob.get("/api/history/t1").status_code == 404


def test_store_unreachable_returns_internal_error(client, alice, tmp_path):
    broken = create_engine(f"sqlite:///{tmp_path / 'missing' / 'db.sqlite'}")

    def broken_session():
        with Session(broken) as session:
            yield session

    app.dependency_overrides[get_db] = broken_session

    response = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"})

    assert response.status_code == 500
    assert response.json() == {"detail": "Internal server error"}
    del app.dependency_overrides[get_db]
    assert client.get("/health").json() == {"status": "ok"}


def test_alice_scenario(client, completion):
    assert register(client).status_code == 201
    login = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert login.status_code == 200

    chat = client.post("/api/chat", json={"message": "Hello", "threadId": "t1"})
    assert chat.json()["reply"] == "Hi there"
    [thread] = client.get("/api/thread").json()
    assert (thread["threadId"], thread["title"]) == ("t1", "Hello")

    assert client.delete("/api/thread/clear", params={"confirm": "true"}).status_code == 200
    assert client.get("/api/thread").json() == []


# Service level


def test_history_window_forwards_prior_turns(session):
    completion = StubCompletion(reply="ok")
    service = ChatService(completion, history_window=2)

    service.send_message(session, 1, "t1", "one")
    service.send_message(session, 1, "t1", "two")

    assert completion.calls[-1] == [
        {"role": "user", "content": "one"},
        {"role": "assistant", "content": "ok"},
        {"role": "user", "content": "two"},
    ]


def test_stateless_by_default(session):
    completion = StubCompletion(reply="ok")
    service = ChatService(completion, history_window=0)

    service.send_message(session, 1, "t1", "one")
    service.send_message(session, 1, "t1", "two")

    assert completion.calls[-1] == [{"role": "user", "content": "two"}]


def test_send_message_rejects_foreign_thread(session):
    thread_service.create_thread(session, 2, "t1", "Not yours")
    service = ChatService(StubCompletion())

    with pytest.raises(ConflictError):
        service.send_message(session, 1, "t1", "hello")
    assert thread_service.count_messages(session, 1, "t1") == 0


def test_send_message_requires_text(session):
    with pytest.raises(InvalidInputError):
        ChatService(StubCompletion()).send_message(session, 1, "t1", None)


# Completion client


def fake_openai(create):
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def test_completion_client_extracts_reply():
    captured = {}

    def create(**kwargs):
        captured.update(kwargs)
        message = SimpleNamespace(content="Hi there")
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])

    client = CompletionClient(fake_openai(create))

    assert client.complete([{"role": "user", "content": "Hello"}]) == "Hi there"
    assert captured["model"] == settings.OPENAI_MODEL
    assert captured["max_tokens"] == 800
    assert captured["temperature"] == 0.2


def test_completion_client_without_choices():
    client = CompletionClient(fake_openai(lambda **kwargs: SimpleNamespace(choices=[])))
    assert client.complete([{"role": "user", "content": "Hello"}]) is None


def test_completion_client_wraps_api_errors():
    def create(**kwargs):
        raise APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    with pytest.raises(UpstreamError) as exc:
        CompletionClient(fake_openai(create)).complete([{"role": "user", "content": "Hello"}])
    assert exc.value.detail.startswith("OpenAI API error")


def test_completion_client_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    with pytest.raises(UpstreamError) as exc:
        CompletionClient().complete([{"role": "user", "content": "Hello"}])
    assert exc.value.detail == "Server misconfiguration: missing API key"
