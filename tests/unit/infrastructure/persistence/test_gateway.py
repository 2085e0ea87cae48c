"""Tests for Gateway against a SQLite file."""

import asyncio

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from src.infrastructure.persistence.gateway import Gateway, is_empty


def _by_id(model, key):
    return lambda stmt: stmt.where(model.id == key)


# --- helpers ---

@pytest.mark.parametrize("value", [None, ""])
def test_is_empty_values(value):
    assert is_empty(value)


@pytest.mark.parametrize("value", [0, False, " ", [], "x"])
def test_is_empty_rejects_set_values(value):
    assert not is_empty(value)


def test_primary_key_names(item_model):
    assert Gateway(None, item_model).primary_key == ["id"]


def test_with_timeout_returns_new_gateway(item_model):
    gateway = Gateway(None, item_model)
    bounded = gateway.with_timeout(1.5)
    assert bounded is not gateway
    assert bounded.timeout == 1.5
    assert gateway.timeout is None
    assert bounded.model is gateway.model


# --- create / first ---

async def test_create_sets_generated_key_and_timestamps(gateway, item_model):
    item = item_model(name="a")
    assert await gateway.create(item) == 1
    assert item.id is not None
    assert item.created_at > 0
    assert item.updated_at >= item.created_at


async def test_create_duplicate_key_raises(gateway, item_model):
    await gateway.create(item_model(id=1, name="a"))
    with pytest.raises(IntegrityError):
        await gateway.create(item_model(id=1, name="b"))


async def test_create_reinserts_detached_instance_after_delete(gateway, item_model):
    await gateway.create(item_model(id=1, name="a"))
    row = await gateway.first(_by_id(item_model, 1))
    await gateway.delete(_by_id(item_model, 1))

    assert await gateway.create(row) == 1
    assert (await gateway.first(_by_id(item_model, 1))).name == "a"


async def test_create_of_still_stored_instance_raises(gateway, item_model):
    await gateway.create(item_model(id=1, name="a"))
    row = await gateway.first(_by_id(item_model, 1))
    with pytest.raises(IntegrityError):
        await gateway.create(row)


async def test_first_returns_none_when_not_found(gateway, item_model):
    assert await gateway.first(_by_id(item_model, 99)) is None


async def test_first_returns_row_readable_after_session_closes(gateway, item_model):
    await gateway.create(item_model(id=3, name="c", score=9))
    row = await gateway.first(_by_id(item_model, 3))
    assert (row.id, row.name, row.score) == (3, "c", 9)


async def test_first_without_predicate_returns_lowest_key(gateway, item_model):
    await gateway.create(item_model(id=5, name="e"))
    await gateway.create(item_model(id=2, name="b"))
    assert (await gateway.first()).id == 2


async def test_first_with_columns_loads_only_those(gateway, item_model):
    await gateway.create(item_model(id=1, name="a", score=4))
    row = await gateway.first(_by_id(item_model, 1), columns=["name"])
    assert row.name == "a"
    assert "score" in inspect(row).unloaded


# --- update ---

async def test_update_writes_only_non_empty_fields(gateway, item_model):
    await gateway.create(item_model(id=1, name="a", score=5))
    assert await gateway.update(_by_id(item_model, 1), item_model(id=1, name="b")) == 1
    row = await gateway.first(_by_id(item_model, 1))
    assert row.name == "b"
    assert row.score == 5


async def test_update_with_nothing_to_write_is_a_no_op(gateway, item_model):
    await gateway.create(item_model(id=1, name="a"))
    assert await gateway.update(_by_id(item_model, 1), item_model(id=1, name="")) == 0


async def test_update_missing_row_affects_nothing(gateway, item_model):
    assert await gateway.update(_by_id(item_model, 7), item_model(id=7, name="x")) == 0


async def test_update_writes_zero_values(gateway, item_model):
    await gateway.create(item_model(id=1, name="a", score=5))
    assert await gateway.update(_by_id(item_model, 1), item_model(id=1, score=0)) == 1
    assert (await gateway.first(_by_id(item_model, 1))).score == 0


# --- save ---

async def test_save_inserts_and_copies_generated_key(gateway, item_model):
    item = item_model(name="new")
    assert await gateway.save(item) == 1
    assert item.id is not None
    assert (await gateway.first(_by_id(item_model, item.id))).name == "new"


async def test_save_overwrites_existing_row(gateway, item_model):
    await gateway.create(item_model(id=1, name="a", score=1))
    await gateway.save(item_model(id=1, name="b", score=2))
    row = await gateway.first(_by_id(item_model, 1))
    assert (row.name, row.score) == ("b", 2)
    assert await gateway.count() == 1


async def test_save_with_identical_values_writes_nothing(gateway, item_model):
    await gateway.create(item_model(id=1, name="a", score=1))
    assert await gateway.save(item_model(id=1, name="a", score=1)) == 0
    assert await gateway.save(item_model(id=1, name="a", score=2)) == 1


# --- delete / find / count ---

async def test_delete_reports_rows_affected(gateway, item_model):
    await gateway.create(item_model(id=1, name="a"))
    assert await gateway.delete(_by_id(item_model, 1)) == 1
    assert await gateway.delete(_by_id(item_model, 1)) == 0


async def test_find_and_count_with_predicate(gateway, item_model):
    for i in range(1, 6):
        await gateway.create(item_model(id=i, name=f"n{i}", score=i))
    high = lambda stmt: stmt.where(item_model.score >= 3)  # noqa: E731
    assert sorted(r.id for r in await gateway.find(high)) == [3, 4, 5]
    assert await gateway.count(high) == 3
    assert await gateway.count() == 5


# --- transactions ---

async def test_transaction_commits_on_return(gateway, item_model):
    async def _work(tx: Gateway):
        await tx.create(item_model(id=1, name="a"))
        await tx.create(item_model(id=2, name="b"))
        return "done"

    assert await gateway.transaction(_work) == "done"
    assert await gateway.count() == 2


async def test_transaction_rolls_back_on_error(gateway, item_model):
    async def _work(tx: Gateway):
        await tx.create(item_model(id=1, name="a"))
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        await gateway.transaction(_work)
    assert await gateway.count() == 0


async def test_nested_transaction_joins_outer(gateway, item_model):
    async def _inner(tx: Gateway):
        await tx.create(item_model(id=2, name="b"))

    async def _outer(tx: Gateway):
        await tx.create(item_model(id=1, name="a"))
        await tx.transaction(_inner)
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        await gateway.transaction(_outer)
    assert await gateway.count() == 0


# --- deadlines ---

class _SlowSession:
    async def __aenter__(self):
        await asyncio.sleep(1)

    async def __aexit__(self, *exc):
        return False


async def test_expired_deadline_raises_timeout(item_model):
    gateway = Gateway(_SlowSession, item_model).with_timeout(0.01)
    with pytest.raises(TimeoutError):
        await gateway.count()
