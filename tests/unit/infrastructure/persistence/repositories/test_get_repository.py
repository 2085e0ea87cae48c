"""Tests for get_repository() wiring from Settings."""

from src.infrastructure.database import Settings
from src.infrastructure.persistence.repositories import EntityCache, get_repository


async def test_cache_enabled_by_default(session_factory, item_model):
    repo = get_repository(session_factory, item_model, Settings())
    assert isinstance(repo, EntityCache)
    assert repo.enabled is True
    assert repo.gateway.model is item_model


async def test_cache_disabled_from_settings(session_factory, item_model):
    repo = get_repository(session_factory, item_model, Settings(cache_enabled=False))
    assert repo.enabled is False
    await repo.add(item_model(id=1, name="a"))
    assert (await repo.get(1)).name == "a"
    assert await repo.cache_total() == 0


async def test_query_timeout_reaches_gateway(session_factory, item_model):
    repo = get_repository(session_factory, item_model, Settings(query_timeout=2.5))
    assert repo.gateway.timeout == 2.5
    assert repo.repository.gateway is repo.gateway


async def test_custom_key_builders_are_used(session_factory, item_model):
    repo = get_repository(
        session_factory,
        item_model,
        Settings(),
        key_of=lambda m: m.name,
        where_key=lambda stmt, name: stmt.where(item_model.name == name),
        where_keys=lambda stmt, names: stmt.where(item_model.name.in_(names)),
    )
    await repo.add(item_model(id=1, name="alpha"))
    assert (await repo.get("alpha")).id == 1
    assert await repo.delete("alpha") == 1
    assert await repo.get("alpha") is None
