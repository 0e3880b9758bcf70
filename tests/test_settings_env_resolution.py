"""
Tests pour la résolution des variables d'environnement.

Ce module teste le chargement des paramètres à partir de fichiers .env personnalisés et de
l'environnement.
"""

from __future__ import annotations

import importlib
from pathlib import Path

EXPECTED_QUOTA = 2048


def test_settings_reads_env_file(tmp_path: Path, monkeypatch) -> None:
    """
    Teste que les settings lisent correctement les fichiers d'environnement.

    Vérifie que les variables définies dans un fichier .env personnalisé sont correctement
    chargées et appliquées aux settings.
    """
    env = tmp_path / ".env.custom"
    env.write_text(
        "STORAGE_BACKEND=memory\nSTORAGE_QUOTA_BYTES=2048\nPARTICIPATION_SCOPE=user\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("ENV_FILE", str(env))

    # Reload settings module to pick up new ENV_FILE
    settings_mod = importlib.import_module("sharek.core.settings")
    importlib.reload(settings_mod)
    s = settings_mod.get_settings()
    assert s.STORAGE_BACKEND == "memory"
    assert s.STORAGE_QUOTA_BYTES == EXPECTED_QUOTA
    assert s.PARTICIPATION_SCOPE == "user"

    monkeypatch.delenv("ENV_FILE")
    importlib.reload(settings_mod)


def test_settings_defaults_and_env_override(monkeypatch) -> None:
    from sharek.core.settings import Settings

    monkeypatch.setenv("key_prefix", "test_")
    monkeypatch.setenv("SEED_FORUM_IDEAS", "false")
    s = Settings(_env_file=None)
    assert s.KEY_PREFIX == "test_"
    assert s.SEED_FORUM_IDEAS is False
    assert s.SEED_DEFAULT_USERS is True
    assert s.PASSWORD_SCHEME == "plaintext"
    assert s.STORAGE_QUOTA_BYTES == 5 * 1024 * 1024
