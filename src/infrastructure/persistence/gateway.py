"""Typed relational gateway over one mapped entity.

Gateway[M] is the thin layer between the repositories and SQLAlchemy.  Every
call is one round-trip in its own session and transaction, except when the
gateway is bound to a session by transaction(), in which case calls share
that session and nothing is committed until the transaction function returns.

Predicates are passed as Where callables (stmt -> stmt) so the same builder
serves SELECT, UPDATE, DELETE and COUNT statements.

Not found is reported as None from first(); any other failure propagates as
the driver's SQLAlchemyError.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy import delete, func, inspect, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import load_only, make_transient

from src.domain.repositories.base import Where

M = TypeVar("M")
T = TypeVar("T")


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def apply_where(stmt: Any, where: Where | None) -> Any:
    return where(stmt) if where is not None else stmt


class Gateway(Generic[M]):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[M],
        *,
        timeout: float | None = None,
        bound_session: AsyncSession | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._model = model
        self._mapper = inspect(model)
        self._timeout = timeout
        self._bound = bound_session
        self._pk_keys = [
            self._mapper.get_property_by_column(column).key
            for column in self._mapper.primary_key
        ]

    @property
    def model(self) -> type[M]:
        return self._model

    @property
    def primary_key(self) -> list[str]:
        """Attribute names of the primary-key columns, in mapper order."""
        return list(self._pk_keys)

    @property
    def timeout(self) -> float | None:
        return self._timeout

    def with_timeout(self, seconds: float | None) -> Gateway[M]:
        """Return a gateway whose calls each run under a deadline of seconds."""
        return Gateway(
            self._session_factory,
            self._model,
            timeout=seconds,
            bound_session=self._bound,
        )

    # ------------------------------------------------------------------ #
    # Session handling                                                     #
    # ------------------------------------------------------------------ #

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        if self._bound is not None:
            yield self._bound
            return
        async with asyncio.timeout(self._timeout):
            async with self._session_factory() as session:
                async with session.begin():
                    yield session

    def _changes(self, entity: M) -> dict[str, Any]:
        """Non-empty, non-key column values currently loaded on entity."""
        loaded = inspect(entity).dict
        values: dict[str, Any] = {}
        for attr in self._mapper.column_attrs:
            if attr.key in self._pk_keys:
                continue
            value = loaded.get(attr.key)
            if not is_empty(value):
                values[attr.key] = value
        return values

    # ------------------------------------------------------------------ #
    # Mutations                                                            #
    # ------------------------------------------------------------------ #

    async def create(self, entity: M) -> int:
        """INSERT entity.  Generated keys and defaults are set on it.

        An instance loaded earlier and since detached (e.g. one served from a
        cache before its row was deleted) is turned back into a new object,
        so the call always issues an INSERT.  Returns 0 only when entity is
        already persistent in the bound session and nothing was inserted.
        """
        state = inspect(entity)
        if state.detached:
            make_transient(entity)
        inserting = state.transient or state.pending
        async with self._session() as session:
            session.add(entity)
            await session.flush()
        return 1 if inserting and state.has_identity else 0

    async def update(self, where: Where, entity: M) -> int:
        """UPDATE the rows matching where with entity's non-empty fields.

        Only None and "" count as empty; 0 and False are written.
        """
        values = self._changes(entity)
        if not values:
            return 0
        stmt = update(self._model).values(**values).execution_options(synchronize_session=False)
        async with self._session() as session:
            result = await session.execute(apply_where(stmt, where))
        return result.rowcount

    async def save(self, entity: M) -> int:
        """Upsert entity by primary key; generated keys are copied back onto it.

        Returns 1 when a row was inserted or changed, 0 when the stored row
        already held the same values and nothing was written.
        """
        async with self._session() as session:
            merged = await session.merge(entity)
            written = inspect(merged).pending or session.is_modified(merged)
            await session.flush()
            state = inspect(entity).dict
            for key in self._pk_keys:
                value = getattr(merged, key)
                if state.get(key) != value:
                    setattr(entity, key, value)
        return 1 if written else 0

    async def delete(self, where: Where) -> int:
        stmt = delete(self._model).execution_options(synchronize_session=False)
        async with self._session() as session:
            result = await session.execute(apply_where(stmt, where))
        return result.rowcount

    # ------------------------------------------------------------------ #
    # Reads                                                                #
    # ------------------------------------------------------------------ #

    async def first(self, where: Where | None = None, columns: Sequence[str] = ()) -> M | None:
        """Return the first matching row by primary key, or None."""
        stmt = select(self._model).order_by(*self._mapper.primary_key).limit(1)
        if columns:
            stmt = stmt.options(load_only(*(getattr(self._model, c) for c in columns)))
        async with self._session() as session:
            result = await session.execute(apply_where(stmt, where))
            return result.scalars().first()

    async def find(self, where: Where | None = None) -> list[M]:
        async with self._session() as session:
            result = await session.execute(apply_where(select(self._model), where))
            return list(result.scalars().all())

    async def count(self, where: Where | None = None) -> int:
        stmt = select(func.count()).select_from(self._model)
        async with self._session() as session:
            result = await session.execute(apply_where(stmt, where))
            return result.scalar_one()

    # ------------------------------------------------------------------ #
    # Transactions                                                         #
    # ------------------------------------------------------------------ #

    async def transaction(self, fn: Callable[[Gateway[M]], Awaitable[T]]) -> T:
        """Run fn with a gateway bound to one transaction.

        Commits when fn returns, rolls back when it raises (cancellation
        included).  Nested calls join the enclosing transaction.
        """
        if self._bound is not None:
            return await fn(self)
        async with asyncio.timeout(self._timeout):
            async with self._session_factory() as session:
                async with session.begin():
                    tx = Gateway(
                        self._session_factory,
                        self._model,
                        timeout=self._timeout,
                        bound_session=session,
                    )
                    return await fn(tx)
