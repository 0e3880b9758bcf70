"""Tests pour le conteneur d'injection de dépendances."""

from __future__ import annotations

from pathlib import Path

import pytest

from sharek.core.container import Container
from sharek.core.settings import Settings
from sharek.infra.kv_store import InMemoryKVStore, JSONFileKVStore, RedisKVStore


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_memory_backend_wires_components() -> None:
    c = Container(_settings(STORAGE_BACKEND="memory"))
    assert c.storage_backend == "memory"
    assert isinstance(c.store, InMemoryKVStore)
    assert len(c.user_repo.get_all_users()) == 3
    assert len(c.forum.list_ideas()) == 2


def test_seeding_can_be_disabled() -> None:
    c = Container(
        _settings(STORAGE_BACKEND="memory", SEED_DEFAULT_USERS=False, SEED_FORUM_IDEAS=False)
    )
    assert c.user_repo.get_all_users() == {}
    assert c.forum.list_ideas() == []


def test_file_backend_persists_across_containers(tmp_path: Path) -> None:
    settings = _settings(STORAGE_BACKEND="file", STORAGE_DIR=str(tmp_path))
    first = Container(settings)
    assert isinstance(first.store, JSONFileKVStore)
    first.participation_for().record_vote(7)
    second = Container(settings)
    assert second.participation_for().has_voted(7)
    assert second.user_repo.seed_default_users() == 0


def test_key_prefix_applied() -> None:
    store = InMemoryKVStore()
    Container(_settings(KEY_PREFIX="qa_"), store=store)
    assert store.get("qa_users") is not None
    assert store.get("sharek_users") is None


def test_participation_scope() -> None:
    session = Container(_settings(STORAGE_BACKEND="memory"))
    assert session.participation_for("a@x.qa") is session.participation_for("b@x.qa")
    scoped = Container(_settings(STORAGE_BACKEND="memory", PARTICIPATION_SCOPE="user"))
    scoped.participation_for("a@x.qa").record_vote(1)
    assert not scoped.participation_for("b@x.qa").has_voted(1)
    assert scoped.participation_for("a@x.qa").has_voted(1)


def test_redis_backend(mock_redis_connection) -> None:
    c = Container(_settings(STORAGE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
    assert c.storage_backend == "redis"
    assert isinstance(c.store, RedisKVStore)
    assert "sharek_users" in mock_redis_connection.data


def test_redis_unavailable_falls_back_to_memory(mock_redis_connection) -> None:
    mock_redis_connection.ping.side_effect = ConnectionError("down")
    c = Container(_settings(STORAGE_BACKEND="redis", REDIS_URL="redis://localhost:6379/0"))
    assert c.storage_backend == "memory-fallback"


def test_redis_required_but_unavailable(mock_redis_connection) -> None:
    mock_redis_connection.ping.side_effect = ConnectionError("down")
    with pytest.raises(RuntimeError):
        Container(
            _settings(
                STORAGE_BACKEND="redis",
                REDIS_URL="redis://localhost:6379/0",
                REQUIRE_REDIS=True,
            )
        )
    with pytest.raises(RuntimeError):
        Container(_settings(STORAGE_BACKEND="redis", REQUIRE_REDIS=True))


def test_get_container_is_cached(monkeypatch) -> None:
    from sharek.core import container as container_module

    monkeypatch.setenv("STORAGE_BACKEND", "memory")
    container_module.get_container.cache_clear()
    try:
        c = container_module.get_container()
        assert c is container_module.get_container()
        assert c.storage_backend == "memory"
    finally:
        container_module.get_container.cache_clear()
