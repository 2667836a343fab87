"""Database engine and session management."""

from collections.abc import Generator
from contextlib import contextmanager
from functools import lru_cache

from sqlalchemy import Engine, create_engine, event, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from videohub.config import settings
from videohub.db.models import Base


def build_engine(database_url: str) -> Engine:
    """Create an engine suited to the database behind ``database_url``."""
    if database_url.startswith("sqlite"):
        # Store calls run in worker threads
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
            return create_engine(database_url, **kwargs)

        engine = create_engine(database_url, **kwargs)
        _take_write_lock_on_begin(engine)
        return engine

    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


def _take_write_lock_on_begin(engine: Engine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    A deferred transaction that reads and then writes can fail with
    "database is locked" without waiting when another connection is
    committing. Taking the write lock up front makes it wait instead.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@lru_cache
def get_engine() -> Engine:
    """Get the engine for the configured database."""
    return build_engine(settings.database_url)


@lru_cache
def session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to ``engine``."""
    return sessionmaker(
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


@contextmanager
def get_session_context(engine: Engine | None = None) -> Generator[Session, None, None]:
    """Get a database session as a context manager."""
    session = session_factory(engine or get_engine())()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine | None = None) -> None:
    """Create all tables and verify connectivity."""
    engine = engine or get_engine()
    Base.metadata.create_all(engine)
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
