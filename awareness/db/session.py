"""Async engine, session factory and declarative base."""
from datetime import datetime, timezone

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from awareness.core.config import get_settings

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_engine(database_url: str, busy_timeout: float = 30.0) -> AsyncEngine:
    """Create the async engine.

    SQLite: the driver's deferred BEGIN lets two readers both try to upgrade to a
    write lock, which SQLite resolves by failing one with "database is locked".
    Emitting BEGIN IMMEDIATE makes every transaction take the write lock up front,
    so concurrent writers queue on the busy timeout instead. Read-only sessions
    opt out with the `sqlite_begin="DEFERRED"` execution option.
    """
    if not database_url.startswith("sqlite"):
        return create_async_engine(database_url, pool_pre_ping=True)

    engine = create_async_engine(database_url, connect_args={"timeout": busy_timeout})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get("sqlite_begin", "IMMEDIATE")
        conn.exec_driver_sql(f"BEGIN {mode}")

    return engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, expire_on_commit=False)


settings = get_settings()
engine = build_engine(settings.database_url, settings.sqlite_busy_timeout)
AsyncSessionLocal = build_session_factory(engine)
