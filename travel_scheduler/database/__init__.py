"""
Database engine, session factory, and metadata shared across the scheduler.
"""

from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from ..core.config import settings

logger = logging.getLogger(__name__)


def _build_engine_kwargs(db_url: str) -> dict[str, Any]:
    """Every store call is bounded: pool checkout for servers, lock wait for SQLite."""
    if db_url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_pool_timeout_seconds,
            },
            "future": True,
        }
    return {
        "pool_size": 5,
        "max_overflow": 5,
        "pool_timeout": settings.db_pool_timeout_seconds,
        "pool_recycle": 300,
        "pool_pre_ping": True,
        "future": True,
    }


def create_db_engine(db_url: str) -> Engine:
    return create_engine(db_url, echo=settings.db_echo, **_build_engine_kwargs(db_url))


engine: Engine = create_db_engine(settings.database_url)


@event.listens_for(engine, "connect")
def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
    logger.debug("Database connection established")


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)

Base: DeclarativeMeta = declarative_base()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for short-lived DB operations (one per job run)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Engine | None = None) -> None:
    """Create tables for every mapped model (development and tests)."""
    from .. import models  # noqa: F401  registers mappers on Base

    Base.metadata.create_all(bind=bind or engine)


__all__ = [
    "Base",
    "SessionLocal",
    "create_db_engine",
    "engine",
    "get_db_session",
    "init_db",
]
