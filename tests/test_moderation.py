"""Tests pour le filtre de modération des contributions."""

from __future__ import annotations

import pytest

from sharek.domain.moderation import BLOCKLIST, find_flagged_terms, is_flagged


@pytest.mark.parametrize(
    "text",
    [
        "I hate this",
        "HATE speech",
        "What a Stupid plan",
        "this will kill the budget",
        "هذا غبي",
        "لا للعنف",
    ],
)
def test_flagged_texts(text: str) -> None:
    assert is_flagged(text)


@pytest.mark.parametrize(
    "text",
    ["Shaded bus stops please", "More parks in Doha", "فكرة ممتازة", "", None],
)
def test_clean_texts_pass(text) -> None:
    assert not is_flagged(text)


def test_substring_match_without_word_boundaries() -> None:
    # "shell" contains "hell", "diet" contains "die": flagged by design of the filter
    assert is_flagged("seashell collection")
    assert is_flagged("a healthy diet")


def test_find_flagged_terms_returns_blocklist_entries() -> None:
    assert find_flagged_terms("Kill the violence") == ["kill", "violence"]
    assert find_flagged_terms("nothing here") == []


def test_custom_keywords() -> None:
    assert is_flagged("spam offer", keywords=["SPAM"])
    assert not is_flagged("I hate this", keywords=["spam"])


def test_blocklist_is_bilingual() -> None:
    assert "hate" in BLOCKLIST
    assert "كراهية" in BLOCKLIST
