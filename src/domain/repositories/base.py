"""Generic repository base interface.

Repository[K, M] is the CRUD/query surface shared by the plain SQL facade
and the write-through entity cache.  Callers can swap one for the other
without changing a line: with the cache disabled both return the same
values for the same calls.

Design notes:
  - All methods are async to accommodate async database drivers.
  - K is the primary-key type, M the mapped entity type.
  - A query is either a QueryModel descriptor or a Where callable that
    appends WHERE clauses to a statement; None selects every row.
  - Mutations return the number of rows the store reports as affected.
  - get() returns None when no row matches; "not found" is never raised.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, Generic, TypeVar, Union

from src.domain.models.query import ListData, ListPage, QueryModel

K = TypeVar("K")
M = TypeVar("M")

# stmt -> stmt with additional WHERE clauses (select, update, or delete)
Where = Callable[[Any], Any]
Query = Union[QueryModel, Where, None]


class Repository(ABC, Generic[K, M]):
    """Abstract CRUD interface for one mapped entity type."""

    @abstractmethod
    async def all(self, query: Query = None) -> list[M]:
        """Return every entity matching query."""

    @abstractmethod
    async def list_page(self, page: ListPage | None = None, query: Query = None) -> ListData[M]:
        """Return one page of matches and the unpaginated match count."""

    @abstractmethod
    async def get(self, key: K) -> M | None:
        """Return the entity with the given primary key, or None."""

    @abstractmethod
    async def get_select(self, key: K, *columns: str) -> M | None:
        """Like get(), loading only the named columns (all when none given)."""

    @abstractmethod
    async def in_(self, keys: Sequence[K]) -> list[M]:
        """Return the entities whose primary key is in keys."""

    @abstractmethod
    async def add(self, entity: M) -> int:
        """Insert entity; generated keys are set on it."""

    @abstractmethod
    async def update(self, entity: M) -> int:
        """Write entity's non-empty fields to the row with its key."""

    @abstractmethod
    async def save(self, entity: M) -> int:
        """Insert or fully overwrite the row with entity's key."""

    @abstractmethod
    async def delete(self, key: K) -> int:
        """Remove the row with the given primary key."""

    @abstractmethod
    async def batch_delete(self, keys: Sequence[K]) -> int:
        """Remove every row in keys inside one transaction."""

    @abstractmethod
    async def batch_save(self, entities: Sequence[M]) -> int:
        """Save every entity inside one transaction; all or nothing."""
