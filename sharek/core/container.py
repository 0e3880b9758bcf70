"""
Conteneur d'injection de dépendances.

Instancie les composants centraux (settings, stockage clé/valeur, dépôt utilisateurs, suivi de
participation, forum) et expose `get_container()` utilisé par l'application hôte.
"""

from functools import lru_cache

import structlog

from sharek.core.settings import Settings, get_settings
from sharek.infra.forum_store import ForumThreadStore
from sharek.infra.kv_store import (
    InMemoryKVStore,
    JSONFileKVStore,
    KVStore,
    RedisKVStore,
    StorageKeys,
)
from sharek.infra.participation import ParticipationTracker
from sharek.infra.repositories import UserRepository


class Container:
    def __init__(self, settings: Settings | None = None, store: KVStore | None = None):
        self.settings = settings or get_settings()
        self._log = structlog.get_logger(__name__).bind(component="container")
        self.keys = StorageKeys(self.settings.KEY_PREFIX)
        if store is not None:
            self.store = store
            self.storage_backend = "injected"
        else:
            self.store, self.storage_backend = self._build_store()

        self.user_repo = UserRepository(
            self.store,
            self.keys,
            seed_defaults=self.settings.SEED_DEFAULT_USERS,
            password_scheme=self.settings.PASSWORD_SCHEME,
        )
        self.forum = ForumThreadStore(
            self.store, self.keys, seed_defaults=self.settings.SEED_FORUM_IDEAS
        )
        self._session_tracker = ParticipationTracker(self.store, self.keys)
        self._log.info("container_ready", storage_backend=self.storage_backend)

    def _build_store(self) -> tuple[KVStore, str]:
        backend = self.settings.STORAGE_BACKEND
        if backend == "redis":
            if not self.settings.REDIS_URL:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but REDIS_URL not set")
                return InMemoryKVStore(self.settings.STORAGE_QUOTA_BYTES), "memory"
            try:
                store = RedisKVStore(self.settings.REDIS_URL, namespace="")
                store.ping()
                return store, "redis"
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                self._log.warning("redis_unavailable_memory_fallback", error=type(err).__name__)
                return InMemoryKVStore(self.settings.STORAGE_QUOTA_BYTES), "memory-fallback"
        if backend == "file":
            return (
                JSONFileKVStore(self.settings.STORAGE_DIR, self.settings.STORAGE_QUOTA_BYTES),
                "file",
            )
        return InMemoryKVStore(self.settings.STORAGE_QUOTA_BYTES), "memory"

    def participation_for(self, email: str | None = None) -> ParticipationTracker:
        """Tracker de participation selon `PARTICIPATION_SCOPE`.

        En portée "session", l'email est ignoré: un seul couple d'ensembles partagé.
        """
        if self.settings.PARTICIPATION_SCOPE == "user" and email:
            return ParticipationTracker(self.store, self.keys, scope=email)
        return self._session_tracker


@lru_cache(maxsize=1)
def get_container() -> Container:
    """Retourne le conteneur du processus (construit au premier appel)."""
    return Container()
