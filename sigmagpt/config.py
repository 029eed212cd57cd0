"""Application settings loaded from environment variables or a `.env` file."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Strongly typed access to the environment.

    Secrets fall back to development values so a fresh checkout runs;
    production deployments must override them.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    PORT: int = 8080
    """Port the ASGI server binds to."""

    ENVIRONMENT: str = "development"
    """`production` switches cookies to secure + SameSite=None."""

    DATABASE_URL: str = "sqlite:///./sigmagpt.db"
    """SQLAlchemy connection string for the persistence layer."""

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT: Optional[float] = None
    OPENAI_MAX_TOKENS: int = 800
    OPENAI_TEMPERATURE: float = 0.2

    CHAT_HISTORY_WINDOW: int = 0
    """Prior turns forwarded to the completion model. 0 sends only the new message."""

    ACCESS_TOKEN_SECRET: str = "accesssecret"
    REFRESH_TOKEN_SECRET: str = "refreshsecret"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    PASSWORD_HASH_ROUNDS: int = 290000
    """pbkdf2_sha256 rounds; the default costs roughly 100ms per verify."""

    CLIENT_URL: str = "http://localhost:5173"
    BASE_URL: str = "http://localhost:8080"
    """Public URL of this backend, used for CORS and for synthesized audio links."""

    UPLOAD_DIR: str = "uploads"
    UPLOAD_CLEANUP_DELAY: float = 5.0
    REPLY_AUDIO_RETENTION: float = 600.0
    """Seconds a synthesized reply stays downloadable under /uploads."""
    TRANSCRIBE_MODEL: str = "whisper-1"
    TTS_MODEL: str = "gpt-4o-mini-tts"
    TTS_VOICE: str = "verse"

    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [url.rstrip("/") for url in (self.CLIENT_URL, self.BASE_URL) if url]


settings = Settings()
