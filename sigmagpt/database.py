"""Database engine and per-request sessions."""
import logging
from typing import Iterator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from sigmagpt.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str):
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


engine = build_engine(settings.DATABASE_URL)


def init_db(bind=None) -> None:
    """Create all tables registered on SQLModel metadata."""
    # Import models so their tables are registered before create_all
    from sigmagpt.models import conversation, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    logger.info("Database tables ensured")


def get_session() -> Iterator[Session]:
    """Yield one session per request."""
    with Session(engine) as session:
        yield session
