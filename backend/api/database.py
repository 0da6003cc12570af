"""
Database setup for the Truth or Dare backend.
Room documents and accounts live in SQLite locally; set DATABASE_URL for Postgres.
"""

import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool


def resolve_database_url(raw_url: str | None) -> str:
    """DATABASE_URL as SQLAlchemy 2.x wants it, or the local rooms.db file."""
    if not raw_url:
        return f"sqlite:///{os.path.join(os.path.dirname(os.path.abspath(__file__)), 'rooms.db')}"
    # Hosted Postgres often hands out postgres://, which SQLAlchemy 2.x rejects
    if raw_url.startswith("postgres://"):
        return raw_url.replace("postgres://", "postgresql://", 1)
    return raw_url


def make_engine(url: str):
    """
    Engine for `url`. SQLite is used from FastAPI's worker threads, so it gets
    check_same_thread=False; an in-memory SQLite database is pinned to one
    connection so every session sees the same rooms.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)
    connect_args = {"check_same_thread": False}
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, connect_args=connect_args, poolclass=StaticPool)
    return create_engine(url, connect_args=connect_args)


def make_session_factory(bind):
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


DATABASE_URL = resolve_database_url(os.environ.get("DATABASE_URL"))
engine = make_engine(DATABASE_URL)
SessionLocal = make_session_factory(engine)
Base = declarative_base()


def get_db():
    """Dependency that yields a DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create the users and rooms tables if they are missing."""
    # Models must be imported so their tables are registered on Base.
    from . import models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
