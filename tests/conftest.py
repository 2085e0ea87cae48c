"""Shared fixtures: a mapped Item entity on a fresh SQLite file per test."""

from collections import Counter

import pytest
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Mapped, mapped_column

from src.infrastructure.database import Base, create_session_factory, init_engine
from src.infrastructure.persistence.gateway import Gateway
from src.infrastructure.persistence.models import IntIdMixin, TimestampMixin


class Item(IntIdMixin, TimestampMixin, Base):
    __tablename__ = "item"

    name: Mapped[str] = mapped_column(String(64), nullable=False)
    score: Mapped[int | None] = mapped_column(Integer, nullable=True)


class ItemTag(IntIdMixin, Base):
    """Child row; with foreign keys enforced it pins its item in place."""

    __tablename__ = "item_tag"

    item_id: Mapped[int] = mapped_column(ForeignKey("item.id"), nullable=False)
    label: Mapped[str] = mapped_column(String(32), nullable=False)


class SpyGateway(Gateway):
    """Gateway that counts reads and can be told to fail or miss them.

    fail["find"] = n makes the next n find() calls raise OperationalError;
    missing = True makes first() report not-found without querying.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = Counter()
        self.fail = Counter()
        self.missing = False

    def _maybe_fail(self, name):
        self.calls[name] += 1
        if self.fail[name] > 0:
            self.fail[name] -= 1
            raise OperationalError(f"{name} statement", {}, Exception("connection lost"))

    async def find(self, where=None):
        self._maybe_fail("find")
        return await super().find(where)

    async def first(self, where=None, columns=()):
        self._maybe_fail("first")
        if self.missing:
            return None
        return await super().first(where, columns)


@pytest.fixture
def item_model():
    return Item


@pytest.fixture
def tag_model():
    return ItemTag


@pytest.fixture
async def engine(tmp_path):
    engine = await init_engine(str(tmp_path / "test.db"))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def gateway(session_factory):
    return Gateway(session_factory, Item)


@pytest.fixture
def spy_gateway(session_factory):
    return SpyGateway(session_factory, Item)
