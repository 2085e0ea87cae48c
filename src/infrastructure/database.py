"""Async SQLAlchemy engine bootstrap, session factory, and settings.

init_engine() accepts the URIs the services are configured with:

    mysql://user:pw@host:3306/app   MySQL; the schema is created if absent
    postgresql://user:pw@host/app   PostgreSQL via asyncpg
    sqlite+aiosqlite:///x.db        any explicit driver URL, used verbatim
    ./data/app.db                   anything else is a local SQLite file

Nothing here is created at import time; callers own the engine they build.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.infrastructure.query_log import install_query_logging


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "data.db"
    database_echo: bool = False
    cache_enabled: bool = True
    query_timeout: float | None = None  # seconds per DB round-trip
    log_queries: bool = False


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


def resolve_url(uri: str) -> URL:
    """Map a configured URI onto an async driver URL."""
    if uri.startswith("mysql://"):
        return make_url("mysql+aiomysql://" + uri.removeprefix("mysql://"))
    if uri.startswith("postgresql://"):
        return make_url("postgresql+asyncpg://" + uri.removeprefix("postgresql://"))
    if "://" in uri:
        return make_url(uri)
    return URL.create("sqlite+aiosqlite", database=uri)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


async def _create_mysql_schema(url: URL, echo: bool) -> None:
    server = create_async_engine(url.set(database=None), echo=echo)
    try:
        async with server.begin() as conn:
            await conn.exec_driver_sql(
                f"CREATE SCHEMA IF NOT EXISTS `{url.database}` DEFAULT CHARACTER SET utf8mb4"
            )
    finally:
        await server.dispose()


async def init_engine(
    uri: str,
    *,
    echo: bool = False,
    log_queries: bool = False,
) -> AsyncEngine:
    """Build an AsyncEngine for uri.

    MySQL targets get their schema created first so a fresh server can be
    pointed at directly.  SQLite connections enforce foreign keys.
    """
    url = resolve_url(uri)
    backend = url.get_backend_name()

    if backend == "mysql" and url.database:
        await _create_mysql_schema(url, echo)

    if backend == "sqlite":
        engine = create_async_engine(url, echo=echo)
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(url, echo=echo, pool_pre_ping=True)

    if log_queries:
        install_query_logging(engine)
    return engine


async def engine_from_settings(settings: Settings) -> AsyncEngine:
    return await init_engine(
        settings.database_url,
        echo=settings.database_echo,
        log_queries=settings.log_queries,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after their session closes."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
