# seating/infrastructure/db/session.py

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from seating.config import settings


# -----------------------------
# Engine
# -----------------------------
def build_engine(database_url: str) -> Engine:
    return create_engine(
        database_url,
        echo=False,
        future=True,
        pool_pre_ping=True,
    )


engine: Engine = build_engine(settings.database_url)


# -----------------------------
# Base Class for Models
# -----------------------------
class Base(DeclarativeBase):
    pass


# -----------------------------
# Session Factory
# -----------------------------
def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    # Seats are handed back to callers after commit, so keep them loaded.
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
    )


SessionLocal = build_session_factory(engine)


# -----------------------------
# Transaction scope
# -----------------------------
@contextmanager
def transaction(session_factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
