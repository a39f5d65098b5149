"""SQLAlchemy engine and session handling for the records store."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .settings import get_settings


class Base(DeclarativeBase):
    """Declarative base for the plan and verification tables."""


def build_session_factory(url: str) -> sessionmaker:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


SessionLocal = build_session_factory(get_settings().resolved_database_url)


def init_database(factory: sessionmaker | None = None) -> None:
    """Create any missing tables on the factory's engine."""
    import vitrine.core.models  # noqa: F401 registers the tables

    Base.metadata.create_all(bind=(factory or SessionLocal).kw["bind"])


@contextmanager
def session_scope(factory: sessionmaker | None = None) -> Generator[Session, None, None]:
    """Commit on success, roll back on any error."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = ["Base", "SessionLocal", "build_session_factory", "init_database", "session_scope"]
