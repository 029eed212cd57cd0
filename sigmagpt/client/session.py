"""Client-side session controller for the SigmaGPT API.

Holds the current user, restores a session on startup, and funnels every
authenticated call through one wrapper that refreshes once on 401
before giving up and logging the user out.
"""
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
import json
import logging
import time

import httpx

logger = logging.getLogger(__name__)

SESSION_EXPIRED_NOTICE = "Session expired. Please log in again."
DEFAULT_CACHE_PATH = Path.home() / ".sigmagpt" / "user.json"


class SessionState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class UserCache:
    """Last-known user, persisted as JSON so a restart can fall back to it."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else DEFAULT_CACHE_PATH

    def load(self) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def save(self, user: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(user), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass
class ClientSession:
    """Explicit session state shared with whatever renders the chat."""
    state: SessionState = SessionState.UNKNOWN
    user: Optional[Dict[str, Any]] = None
    threads: List[Dict[str, Any]] = field(default_factory=list)
    current_thread_id: Optional[str] = None
    prompt: str = ""
    reply: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.AUTHENTICATED


def _user_from(payload: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict):
        return None
    user = payload.get("user", payload)
    return user if isinstance(user, dict) else None


class SessionController:
    """
    Session state machine: unknown -> checking -> authenticated | anonymous.

    Args:
        base_url: API origin, e.g. "http://localhost:8080"
        http_client: injected httpx.Client (its cookie jar carries the tokens)
        cache: persistent last-known-user store
        retry_delay: pause before re-checking /auth/me after a first 401
        on_notice: called with user-facing notices such as session expiry
    """

    def __init__(
        self,
        base_url: str = "",
        http_client: Optional[httpx.Client] = None,
        cache: Optional[UserCache] = None,
        retry_delay: float = 0.5,
        on_notice: Optional[Callable[[str], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
        api_prefix: str = "/api",
    ):
        self.http = http_client or httpx.Client(base_url=base_url)
        self.cache = cache or UserCache()
        self.retry_delay = retry_delay
        self.on_notice = on_notice
        self._sleep = sleep
        self.api_prefix = api_prefix.rstrip("/")
        self.session = ClientSession()

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.session.user

    def _url(self, path: str) -> str:
        return f"{self.api_prefix}/{path.lstrip('/')}"

    def _notify(self, message: str) -> None:
        logger.info(message)
        if self.on_notice:
            self.on_notice(message)

    def _become_authenticated(self, user: Dict[str, Any]) -> None:
        self.session.user = user
        self.session.state = SessionState.AUTHENTICATED
        self.cache.save(user)

    def _become_anonymous(self) -> None:
        self.session.user = None
        self.session.threads = []
        self.session.current_thread_id = None
        self.session.state = SessionState.ANONYMOUS
        self.cache.clear()

    def _refresh(self) -> Optional[Dict[str, Any]]:
        """POST /auth/refresh; the refreshed user, or None on any failure."""
        try:
            response = self.http.post(self._url("auth/refresh"))
        except httpx.HTTPError as e:
            logger.warning(f"Refresh request failed: {e}")
            return None
        if response.status_code != httpx.codes.OK:
            return None
        try:
            return _user_from(response.json())
        except ValueError:
            logger.warning("Refresh returned a non-JSON body")
            return None

    def restore(self) -> SessionState:
        """
        Re-authenticate silently on startup.

        /auth/me, then once more after retry_delay (the cookie may lag
        right after login), then /auth/refresh, then the cached user.
        """
        self.session.state = SessionState.CHECKING
        try:
            for attempt in range(2):
                response = self.http.get(self._url("auth/me"))
                if response.status_code == httpx.codes.OK:
                    user = _user_from(response.json())
                    if user:
                        self._become_authenticated(user)
                        return self.state
                    break
                if response.status_code != httpx.codes.UNAUTHORIZED:
                    break
                if attempt == 0:
                    logger.debug(f"401 on /auth/me, retrying in {self.retry_delay}s")
                    self._sleep(self.retry_delay)
            else:
                user = self._refresh()
                if user:
                    self._become_authenticated(user)
                    return self.state
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Session check failed: {e}")

        cached = self.cache.load()
        if cached:
            self.session.user = cached
            self.session.state = SessionState.AUTHENTICATED
        else:
            self.session.user = None
            self.session.state = SessionState.ANONYMOUS
        return self.state

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Authenticated request under the API prefix.

        On 401 the refresh endpoint is called once and the request replayed
        once. If refresh fails the session ends and the 401 is returned.
        """
        url = self._url(path)
        response = self.http.request(method, url, **kwargs)
        if response.status_code != httpx.codes.UNAUTHORIZED:
            return response

        user = self._refresh()
        if user is None:
            self._become_anonymous()
            self._notify(SESSION_EXPIRED_NOTICE)
            return response

        self._become_authenticated(user)
        return self.http.request(method, url, **kwargs)

    def register(self, name: str, email: str, password: str) -> httpx.Response:
        response = self.http.post(
            self._url("auth/register"),
            json={"name": name, "email": email, "password": password},
        )
        if response.is_success:
            self._become_authenticated(_user_from(response.json()) or {})
        return response

    def login(self, email: str, password: str) -> httpx.Response:
        response = self.http.post(
            self._url("auth/login"),
            json={"email": email, "password": password},
        )
        if response.is_success:
            self._become_authenticated(_user_from(response.json()) or {})
            self._notify("Login successful!")
        return response

    def logout(self) -> None:
        """Fire-and-forget server logout, then drop local state regardless."""
        try:
            self.http.post(self._url("auth/logout"))
        except httpx.HTTPError as e:
            logger.warning(f"Logout error: {e}")
        self.http.cookies.clear()
        self._become_anonymous()
        self._notify("You have been logged out successfully!")

    def chat(self, message: str, thread_id: str) -> httpx.Response:
        self.session.prompt = message
        self.session.current_thread_id = thread_id
        response = self.request("POST", "chat", json={"message": message, "threadId": thread_id})
        if response.is_success:
            self.session.reply = response.json().get("reply")
        return response

    def history(self, thread_id: str) -> httpx.Response:
        return self.request("GET", f"history/{thread_id}")

    def list_threads(self) -> httpx.Response:
        response = self.request("GET", "thread")
        if response.is_success:
            self.session.threads = response.json()
        return response

    def create_thread(self, thread_id: str, title: str) -> httpx.Response:
        return self.request("POST", "thread", json={"threadId": thread_id, "title": title})

    def get_thread(self, thread_id: str) -> httpx.Response:
        return self.request("GET", f"thread/{thread_id}")

    def delete_thread(self, thread_id: str) -> httpx.Response:
        response = self.request("DELETE", f"thread/{thread_id}")
        if response.is_success and self.session.current_thread_id == thread_id:
            self.session.current_thread_id = None
        return response

    def clear_threads(self, confirm: bool = False) -> httpx.Response:
        """Delete every thread. The server refuses unless confirm is True."""
        response = self.request(
            "DELETE", "thread/clear", params={"confirm": "true" if confirm else "false"}
        )
        if response.is_success:
            self.session.threads = []
            self.session.current_thread_id = None
        return response
