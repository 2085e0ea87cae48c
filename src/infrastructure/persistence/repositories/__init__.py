"""Concrete SQLAlchemy repository implementations.

Exports the uncached SqlRepository, the write-through EntityCache, and the
get_repository() factory for wiring at the application boundary.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database import Settings
from src.infrastructure.persistence.gateway import Gateway

from .cache import EntityCache
from .sql import KeyBinding, SqlRepository


def get_repository(
    session_factory: async_sessionmaker[AsyncSession],
    model: type[Any],
    settings: Settings,
    *,
    key_of: Callable[[Any], Any] | None = None,
    where_key: Callable[[Any, Any], Any] | None = None,
    where_keys: Callable[[Any, Sequence[Any]], Any] | None = None,
) -> EntityCache[Any, Any]:
    """Construct the repository for model as configured by settings.

    The result is always an EntityCache; settings.cache_enabled decides
    whether it keeps an in-memory image or passes straight through:

        engine = await engine_from_settings(settings)
        devices = get_repository(create_session_factory(engine), Device, settings)
        device = await devices.get(device_id)
    """
    gateway = Gateway(session_factory, model, timeout=settings.query_timeout)
    return EntityCache(
        gateway,
        enabled=settings.cache_enabled,
        key_of=key_of,
        where_key=where_key,
        where_keys=where_keys,
    )


__all__ = [
    "EntityCache",
    "KeyBinding",
    "SqlRepository",
    "get_repository",
]
