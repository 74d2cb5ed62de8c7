"""Database engine and session helpers for the relational inquiry store."""

from __future__ import annotations

import contextlib
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from inbox.config import get_settings

Base = declarative_base()


def create_db_engine(database_url: Optional[str] = None) -> Engine:
    """
    Create an engine for the given URL (defaults to settings.database_url).

    In-memory SQLite shares one connection so every session sees the same data.
    """
    url = database_url or get_settings().database_url
    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, pool_pre_ping=True)


@contextlib.contextmanager
def db_session(engine: Optional[Engine] = None) -> Iterator[Session]:
    """Yield a session that is rolled back on error and always closed."""
    factory = sessionmaker(
        bind=engine or create_db_engine(), autocommit=False, autoflush=False
    )
    db = factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
