"""Database engine and session setup."""

from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """
    Timestamps stored as naive UTC, returned as aware UTC.

    Naive inputs are read as local time, ISO-8601 strings are parsed first.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def create_db_engine(database_url: str, pool_recycle: int = 280) -> Engine:
    """
    Build an engine for `database_url`.

    SQLite URLs get a thread-agnostic connection (and a single shared one for
    in-memory databases); server databases get pool recycling and pre-ping.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    return create_engine(
        database_url,
        pool_recycle=pool_recycle,  # Reconnect before MySQL's default idle timeout
        pool_pre_ping=True,         # Test connection health before use
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@contextmanager
def get_db(session_factory: sessionmaker):
    """
    Provide a transactional database session.

    Commits on success, rolls back on any exception, always closes the session.
    Usage:
        with get_db(session_factory) as db:
            db.add(record)
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
