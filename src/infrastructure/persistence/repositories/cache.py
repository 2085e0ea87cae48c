"""Write-through in-memory image of one relation.

EntityCache keeps every row of its table in a dict keyed by primary key and
serves reads from it.  Mutations always go to the store first; only when the
store reports affected rows is the image reconciled, by re-reading the
touched keys (add / update / save / batch_save) or dropping them
(delete / batch_delete).

Validity:
    The image carries one flag.  It starts invalid; the first read under the
    lock replaces the whole dict from a full table read and marks it valid.
    Any failed reload marks it invalid again, so the next read heals it.

Locking:
    One asyncio.Lock guards the dict and the flag.  Mutations run their
    store call without the lock and take it only for the reconciliation
    step; reads take it for the whole call, including a full reload when
    the image is invalid, so concurrent readers of an invalid image cause a
    single table read.  Nothing re-enters the lock: callbacks passed to
    foreach_cache / update_cache must not call back into the cache.

Disabled:
    With enabled=False the CRUD surface is the plain SqlRepository and the
    cache-only methods are no-ops returning empty results.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from src.domain.models.query import ListData, ListPage
from src.domain.repositories.base import K, M, Query, Where
from src.domain.repositories.cache import CachedRepository
from src.infrastructure.persistence.gateway import Gateway

from .sql import KeyBinding, SqlRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EntityCache(CachedRepository[K, M]):
    def __init__(
        self,
        gateway: Gateway[M],
        enabled: bool = True,
        key_of: Callable[[M], K] | None = None,
        where_key: Callable[[Any, K], Any] | None = None,
        where_keys: Callable[[Any, Sequence[K]], Any] | None = None,
    ) -> None:
        self._gateway = gateway
        self._enabled = enabled
        self._keys: KeyBinding[K, M] = KeyBinding(gateway.model, key_of, where_key, where_keys)
        self._repository: SqlRepository[K, M] = SqlRepository(gateway, self._keys)
        self._lock = asyncio.Lock()
        self._data: dict[K, M] = {}
        self._ok = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def valid(self) -> bool:
        """Whether the image is currently believed consistent with the store."""
        return self._ok

    @property
    def gateway(self) -> Gateway[M]:
        return self._gateway

    @property
    def repository(self) -> SqlRepository[K, M]:
        """The uncached facade every store call goes through."""
        return self._repository

    @property
    def _name(self) -> str:
        return self._gateway.model.__name__

    # ------------------------------------------------------------------ #
    # Loading (lock held by caller)                                        #
    # ------------------------------------------------------------------ #

    async def _ensure_loaded(self) -> None:
        if self._ok:
            return
        rows = await self._gateway.find()
        self._data = {self._keys.key_of(row): row for row in rows}
        self._ok = True
        logger.debug("Loaded %d %s rows into cache", len(rows), self._name)

    async def _reload_one(self, key: K) -> None:
        try:
            row = await self._gateway.first(self._keys.one(key))
        except BaseException:
            self._ok = False
            raise
        # A row deleted in the meantime leaves the entry as it was.
        if row is not None:
            self._data[key] = row

    async def _reload_many(self, where: Where) -> None:
        try:
            rows = await self._gateway.find(where)
        except BaseException:
            self._ok = False
            raise
        for row in rows:
            self._data[self._keys.key_of(row)] = row

    async def _reconcile(self, key: K) -> None:
        """Re-read key after a successful mutation.

        The store call already succeeded, so a failed re-read is logged and
        left to the next read's full reload rather than raised.
        """
        async with self._lock:
            try:
                await self._reload_one(key)
            except Exception:
                logger.warning(
                    "Reloading %s %r after write failed; cache invalidated",
                    self._name,
                    key,
                    exc_info=True,
                )

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def all(self, query: Query = None) -> list[M]:
        """All entities; a query is evaluated by the store, not the image."""
        if not self._enabled or query is not None:
            return await self._repository.all(query)
        async with self._lock:
            await self._ensure_loaded()
            return list(self._data.values())

    async def list_page(self, page: ListPage | None = None, query: Query = None) -> ListData[M]:
        return await self._repository.list_page(page, query)

    async def get(self, key: K) -> M | None:
        if not self._enabled:
            return await self._repository.get(key)
        async with self._lock:
            await self._ensure_loaded()
            return self._data.get(key)

    async def get_select(self, key: K, *columns: str) -> M | None:
        """Cached entities are complete rows, so columns only matter uncached."""
        if not self._enabled:
            return await self._repository.get_select(key, *columns)
        return await self.get(key)

    async def in_(self, keys: Sequence[K]) -> list[M]:
        if not self._enabled:
            return await self._repository.in_(keys)
        return await self.search_cache_in(keys)

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def add(self, entity: M) -> int:
        rows = await self._repository.add(entity)
        if self._enabled and rows > 0:
            await self._reconcile(self._keys.key_of(entity))
        return rows

    async def update(self, entity: M) -> int:
        rows = await self._repository.update(entity)
        if self._enabled and rows > 0:
            await self._reconcile(self._keys.key_of(entity))
        return rows

    async def save(self, entity: M) -> int:
        rows = await self._repository.save(entity)
        if self._enabled and rows > 0:
            await self._reconcile(self._keys.key_of(entity))
        return rows

    async def delete(self, key: K) -> int:
        rows = await self._repository.delete(key)
        if self._enabled and rows > 0:
            async with self._lock:
                self._data.pop(key, None)
        return rows

    async def batch_delete(self, keys: Sequence[K]) -> int:
        rows = await self._repository.batch_delete(keys)
        if self._enabled and rows > 0:
            async with self._lock:
                for key in keys:
                    self._data.pop(key, None)
        return rows

    async def batch_save(self, entities: Sequence[M]) -> int:
        rows = await self._repository.batch_save(entities)
        if self._enabled and rows > 0:
            where = self._keys.many([self._keys.key_of(entity) for entity in entities])
            async with self._lock:
                try:
                    await self._reload_many(where)
                except Exception:
                    logger.warning(
                        "Reloading %d %s rows after batch save failed; cache invalidated",
                        rows,
                        self._name,
                        exc_info=True,
                    )
        return rows

    # ------------------------------------------------------------------ #
    # Cache-only operations                                                #
    # ------------------------------------------------------------------ #

    async def invalidate(self) -> None:
        """Mark the image stale; the next read reloads the full table."""
        async with self._lock:
            self._ok = False

    async def load_all(self) -> None:
        if not self._enabled:
            return
        async with self._lock:
            await self._ensure_loaded()

    async def load(self, key: K) -> None:
        if not self._enabled:
            return
        async with self._lock:
            await self._reload_one(key)

    async def load_where(self, where: Where) -> None:
        if not self._enabled:
            return
        async with self._lock:
            await self._reload_many(where)

    async def foreach_cache(self, fn: Callable[[M], None]) -> None:
        if not self._enabled:
            return
        async with self._lock:
            await self._ensure_loaded()
            for entity in self._data.values():
                fn(entity)

    async def search_cache(self, match: Callable[[M], bool]) -> list[M]:
        if not self._enabled:
            return []
        async with self._lock:
            await self._ensure_loaded()
            return [entity for entity in self._data.values() if match(entity)]

    async def search_cache_map(self, match: Callable[[M], tuple[bool, T]]) -> list[T]:
        if not self._enabled:
            return []
        found: list[T] = []
        async with self._lock:
            await self._ensure_loaded()
            for entity in self._data.values():
                ok, value = match(entity)
                if ok:
                    found.append(value)
        return found

    async def search_cache_in(self, keys: Sequence[K]) -> list[M]:
        if not self._enabled:
            return []
        async with self._lock:
            await self._ensure_loaded()
            return [self._data[key] for key in keys if key in self._data]

    async def search_cache_one(self, match: Callable[[M], bool]) -> M | None:
        if not self._enabled:
            return None
        async with self._lock:
            await self._ensure_loaded()
            return next((entity for entity in self._data.values() if match(entity)), None)

    async def cache_count(self, match: Callable[[M], bool]) -> int:
        if not self._enabled:
            return 0
        async with self._lock:
            await self._ensure_loaded()
            return sum(1 for entity in self._data.values() if match(entity))

    async def cache_total(self) -> int:
        if not self._enabled:
            return 0
        async with self._lock:
            await self._ensure_loaded()
            return len(self._data)

    async def update_cache(self, key: K, fn: Callable[[M | None], None]) -> None:
        """Edit the cached entity in place; fn receives None for absent keys."""
        if not self._enabled:
            return
        async with self._lock:
            fn(self._data.get(key))

    async def delete_cache(self, key: K) -> None:
        if not self._enabled:
            return
        async with self._lock:
            self._data.pop(key, None)

    async def batch_delete_cache(self, keys: Sequence[K]) -> None:
        if not self._enabled:
            return
        async with self._lock:
            for key in keys:
                self._data.pop(key, None)
