"""Cached repository interface."""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Sequence
from typing import TypeVar

from .base import K, M, Repository, Where

T = TypeVar("T")


class CachedRepository(Repository[K, M]):
    """Repository that also keeps an in-memory image of the whole relation.

    Entities handed out by any method are shared with the image and must be
    treated as read-only; update_cache() is the only sanctioned in-place edit.
    When the cache is disabled every method below is a no-op returning an
    empty result.
    """

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether the in-memory image is in use."""

    @abstractmethod
    async def load_all(self) -> None:
        """Load the full relation if the image is not currently valid."""

    @abstractmethod
    async def load(self, key: K) -> None:
        """Re-read one row into the image."""

    @abstractmethod
    async def load_where(self, where: Where) -> None:
        """Re-read the rows matching where and merge them into the image."""

    @abstractmethod
    async def foreach_cache(self, fn: Callable[[M], None]) -> None:
        """Call fn on every cached entity while the cache lock is held."""

    @abstractmethod
    async def search_cache(self, match: Callable[[M], bool]) -> list[M]:
        """Return cached entities for which match is true."""

    @abstractmethod
    async def search_cache_map(self, match: Callable[[M], tuple[bool, T]]) -> list[T]:
        """Collect the values match produces for the entities it accepts."""

    @abstractmethod
    async def search_cache_in(self, keys: Sequence[K]) -> list[M]:
        """Return cached entities for the keys that are present."""

    @abstractmethod
    async def search_cache_one(self, match: Callable[[M], bool]) -> M | None:
        """Return any one cached entity for which match is true."""

    @abstractmethod
    async def cache_count(self, match: Callable[[M], bool]) -> int:
        """Count cached entities for which match is true."""

    @abstractmethod
    async def cache_total(self) -> int:
        """Number of cached entities."""

    @abstractmethod
    async def update_cache(self, key: K, fn: Callable[[M | None], None]) -> None:
        """Call fn on the cached entity for key (None if absent) under the lock."""

    @abstractmethod
    async def delete_cache(self, key: K) -> None:
        """Drop key from the image without touching the store."""

    @abstractmethod
    async def batch_delete_cache(self, keys: Sequence[K]) -> None:
        """Drop keys from the image without touching the store."""
