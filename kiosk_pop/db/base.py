from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from kiosk_pop.config import settings


def _engine_connect_args() -> dict:
    if settings.is_sqlite:
        return {"check_same_thread": False}
    return {}


engine: Engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    pool_pre_ping=settings.DB_POOL_PRE_PING,
    connect_args=_engine_connect_args(),
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


class Base(DeclarativeBase):
    pass


def init_db() -> None:
    # Imported for its side effect of registering every table on Base.metadata.
    from kiosk_pop.db import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope():
    """Provide a session for scripts and always close it."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
