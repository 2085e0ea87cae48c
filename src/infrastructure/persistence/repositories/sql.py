"""SQLAlchemy implementation of Repository over a Gateway.

SqlRepository is the uncached CRUD/query facade.  It resolves keys into
predicates with the injected builders and delegates each call to the
gateway; batch mutations run inside one gateway transaction.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Generic

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from src.domain.errors import TransactionAborted
from src.domain.models.query import ListData, ListPage
from src.domain.repositories.base import K, M, Query, Repository, Where
from src.infrastructure.persistence.gateway import Gateway
from src.infrastructure.persistence.predicates import (
    as_where,
    chain,
    key_of_for,
    paginate,
    where_key_for,
    where_keys_for,
)


class KeyBinding(Generic[K, M]):
    """How keys are read from entities and turned into predicates.

    Any builder left as None is derived from the model's single-column
    primary key.
    """

    def __init__(
        self,
        model: type[M],
        key_of: Callable[[M], K] | None = None,
        where_key: Callable[[Any, K], Any] | None = None,
        where_keys: Callable[[Any, Sequence[K]], Any] | None = None,
    ) -> None:
        mapper = inspect(model)
        self.key_of = key_of or key_of_for(mapper)
        self._where_key = where_key or where_key_for(mapper)
        self._where_keys = where_keys or where_keys_for(mapper)

    def one(self, key: K) -> Where:
        return lambda stmt: self._where_key(stmt, key)

    def many(self, keys: Sequence[K]) -> Where:
        keys = list(keys)
        return lambda stmt: self._where_keys(stmt, keys)


class SqlRepository(Repository[K, M]):
    def __init__(self, gateway: Gateway[M], keys: KeyBinding[K, M] | None = None) -> None:
        self._gateway = gateway
        self._keys = keys or KeyBinding(gateway.model)

    @property
    def gateway(self) -> Gateway[M]:
        return self._gateway

    @property
    def keys(self) -> KeyBinding[K, M]:
        return self._keys

    async def all(self, query: Query = None) -> list[M]:
        return await self._gateway.find(as_where(query))

    async def list_page(self, page: ListPage | None = None, query: Query = None) -> ListData[M]:
        """Count the unpaginated matches, then fetch the requested page."""
        where = as_where(query)
        total = await self._gateway.count(where)
        data = await self._gateway.find(chain(where, paginate(page)))
        return ListData(total=total, data=data)

    async def get(self, key: K) -> M | None:
        return await self._gateway.first(self._keys.one(key))

    async def get_select(self, key: K, *columns: str) -> M | None:
        return await self._gateway.first(self._keys.one(key), columns)

    async def in_(self, keys: Sequence[K]) -> list[M]:
        if not keys:
            return []
        return await self._gateway.find(self._keys.many(keys))

    async def add(self, entity: M) -> int:
        return await self._gateway.create(entity)

    async def update(self, entity: M) -> int:
        return await self._gateway.update(self._keys.one(self._keys.key_of(entity)), entity)

    async def save(self, entity: M) -> int:
        return await self._gateway.save(entity)

    async def delete(self, key: K) -> int:
        return await self._gateway.delete(self._keys.one(key))

    async def batch_delete(self, keys: Sequence[K]) -> int:
        if not keys:
            return 0
        where = self._keys.many(keys)

        async def _delete_all(tx: Gateway[M]) -> int:
            return await tx.delete(where)

        try:
            return await self._gateway.transaction(_delete_all)
        except SQLAlchemyError as exc:
            raise TransactionAborted("batch_delete", len(keys)) from exc

    async def batch_save(self, entities: Sequence[M]) -> int:
        async def _save_all(tx: Gateway[M]) -> int:
            rows = 0
            for entity in entities:
                rows += await tx.save(entity)
            return rows

        try:
            return await self._gateway.transaction(_save_all)
        except SQLAlchemyError as exc:
            raise TransactionAborted("batch_save", len(entities)) from exc
