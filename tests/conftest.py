"""Configuration de test pour pytest avec gestion des chemins.

Ce module configure pytest pour résoudre les imports `sharek` en ajoutant la racine du projet au
sys.path, remplace le client Redis par un faux client en mémoire et fournit les composants du
moteur montés sur un stockage en mémoire.
"""

import os
import sys
from unittest.mock import Mock, patch

import pytest

# Ensure project root is on sys.path so that
# imports like `from sharek...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from sharek.infra.forum_store import ForumThreadStore  # noqa: E402
from sharek.infra.kv_store import InMemoryKVStore, StorageKeys  # noqa: E402
from sharek.infra.participation import ParticipationTracker  # noqa: E402
from sharek.infra.repositories import UserRepository  # noqa: E402


@pytest.fixture(autouse=True)
def mock_redis_connection():
    """Mock Redis connections pour éviter les erreurs de connexion dans les tests.

    Le faux client conserve les valeurs dans un dict pour que get/set/delete soient cohérents.
    """
    with patch("redis.Redis") as mock_redis:
        data: dict[str, str] = {}
        mock_redis_instance = Mock()
        mock_redis_instance.data = data
        mock_redis_instance.ping.return_value = True
        mock_redis_instance.get.side_effect = lambda key: data.get(key)

        def _set(key, value, *args, **kwargs):
            data[key] = value
            return True

        def _delete(*keys):
            return sum(1 for k in keys if data.pop(k, None) is not None)

        mock_redis_instance.set.side_effect = _set
        mock_redis_instance.delete.side_effect = _delete
        mock_redis.return_value = mock_redis_instance
        mock_redis.from_url.return_value = mock_redis_instance
        yield mock_redis_instance


@pytest.fixture
def store() -> InMemoryKVStore:
    """Stockage clé/valeur en mémoire, vierge."""
    return InMemoryKVStore()


@pytest.fixture
def keys() -> StorageKeys:
    """Espace de noms par défaut (`sharek_`)."""
    return StorageKeys()


@pytest.fixture
def repo(store, keys) -> UserRepository:
    """Dépôt utilisateurs sans comptes de démonstration."""
    return UserRepository(store, keys, seed_defaults=False)


@pytest.fixture
def seeded_repo(store, keys) -> UserRepository:
    """Dépôt utilisateurs avec les trois comptes de démonstration."""
    return UserRepository(store, keys)


@pytest.fixture
def tracker(store, keys) -> ParticipationTracker:
    """Suivi de participation en portée session."""
    return ParticipationTracker(store, keys)


@pytest.fixture
def forum(store, keys) -> ForumThreadStore:
    """Forum vierge (sans discussions d'exemple)."""
    return ForumThreadStore(store, keys)
