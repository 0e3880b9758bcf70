"""Tests des compteurs Prometheus incrémentés par les composants."""

from __future__ import annotations

from prometheus_client import REGISTRY

from sharek.infra.forum_store import ForumThreadStore
from sharek.infra.kv_store import InMemoryKVStore, commit_json, read_json
from sharek.infra.monitoring.metrics import render_latest


def _value(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


def test_moderation_rejection_counted(forum) -> None:
    before = _value("sharek_moderation_rejections_total", {"target": "idea"})
    result = forum.create_idea("Stop the violence", "Please", "Aisha")
    assert result.reason == "flagged_content"
    after = _value("sharek_moderation_rejections_total", {"target": "idea"})
    assert after == before + 1


def test_participation_results_counted(tracker) -> None:
    labels = {"kind": "poll", "result": "duplicate"}
    before = _value("sharek_participation_records_total", labels)
    tracker.record_vote(42)
    tracker.record_vote(42)
    assert _value("sharek_participation_records_total", labels) == before + 1


def test_quota_error_counted() -> None:
    store = InMemoryKVStore(max_bytes=4)
    before = _value("sharek_store_errors_total", {"error_type": "quota"})
    assert commit_json(store, "sharek_users", {"too": "large"}) is False
    assert _value("sharek_store_errors_total", {"error_type": "quota"}) == before + 1


def test_malformed_content_counted(keys) -> None:
    store = InMemoryKVStore()
    store.set("sharek_forum_ideas", "{not json")
    before = _value("sharek_store_malformed_total", {"key": "sharek_forum_ideas"})
    assert read_json(store, "sharek_forum_ideas", list, []) == []
    assert ForumThreadStore(store, keys).list_ideas() == []
    assert _value("sharek_store_malformed_total", {"key": "sharek_forum_ideas"}) == before + 2


def test_render_latest_exposes_counters() -> None:
    body = render_latest().decode()
    assert "sharek_moderation_rejections_total" in body
    assert "sharek_users_seeded_total" in body
