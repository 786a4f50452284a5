"""
Database setup for Lunar Policy Gaming.
Uses a SQLite file beside this module unless DATABASE_URL points elsewhere (e.g. Postgres).
The API takes sessions from get_db; scripts use session_scope for commit/rollback.
"""

import os
from contextlib import contextmanager
from typing import Any, Iterator
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def resolve_database_url(raw_url: str | None = None) -> str:
    """DATABASE_URL, normalised for SQLAlchemy 2.x, or the local SQLite file."""
    if raw_url is None:
        raw_url = os.environ.get("DATABASE_URL")
    if not raw_url:
        db_dir = os.path.dirname(os.path.abspath(__file__))
        return f"sqlite:///{os.path.join(db_dir, 'lunar_policy.db')}"
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def engine_options(url: str) -> dict[str, Any]:
    if not url.startswith("sqlite"):
        return {}
    # API requests run in a threadpool, so the connection crosses threads
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if url in IN_MEMORY_URLS:
        # Every new connection would otherwise open its own empty database
        options["poolclass"] = StaticPool
    return options


DATABASE_URL = resolve_database_url()
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """A session that commits on success and rolls back if the block raises."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Create all tables."""
    # Models register themselves on Base when imported
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=engine)


def drop_db():
    """Drop all tables. Used to give each API test a clean database."""
    from . import models  # noqa: F401
    Base.metadata.drop_all(bind=engine)
