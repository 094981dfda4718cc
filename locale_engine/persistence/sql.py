"""SQL storage for the durable tier."""
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

from sqlalchemy import DateTime, Engine, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
import logging

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class StoredValue(Base):
    """One key/value pair written by the durable storage tier."""
    __tablename__ = "locale_storage"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)


def create_store_engine(url: str, echo: bool = False) -> Engine:
    """Create the engine behind a durable tier and make sure its table exists."""
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}  # SQLite specific
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every checkout sees an empty database
            kwargs["poolclass"] = StaticPool
        else:
            db_path = url.split("sqlite:///", 1)[-1]
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(url, echo=echo, **kwargs)
    else:
        engine = create_engine(url, echo=echo)

    Base.metadata.create_all(bind=engine)
    logger.info(f"Durable storage ready: {engine.url.render_as_string(hide_password=True)}")
    return engine


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Usage:
        with session_scope(factory) as db:
            db.get(StoredValue, key)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
