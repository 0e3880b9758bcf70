"""Stockage clé/valeur durable: unique frontière d'E/S du moteur.

Ce module fournit l'interface `KVStore` (get/set/remove synchrones sur des clés textuelles) et
trois implémentations: en mémoire (dev/tests), fichiers JSON locaux (défaut) et Redis.

Les valeurs sont des textes déjà sérialisés; le décodage et la reprise sur contenu corrompu
relèvent des consommateurs, via `read_json`.
"""

from __future__ import annotations

import errno
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from urllib.parse import quote

import redis
import structlog
from redis.exceptions import RedisError, ResponseError

from sharek.domain.exceptions import StorageError, StorageQuotaError
from sharek.infra.monitoring.metrics import STORE_ERRORS, STORE_MALFORMED

log = structlog.get_logger(__name__)

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class StorageKeys:
    """Noms logiques des clés persistées (préfixés par `KEY_PREFIX`)."""

    USERS = "users"
    CURRENT_USER_EMAIL = "current_user_email"
    VOTED_POLLS = "voted_polls"
    COMPLETED_SURVEYS = "completed_surveys"
    FORUM_IDEAS = "forum_ideas"

    def __init__(self, prefix: str = "sharek_") -> None:
        """Initialise l'espace de noms avec le préfixe donné."""
        self.prefix = prefix

    def key(self, name: str, scope: str | None = None) -> str:
        """Construit la clé physique `{prefix}{name}[:{scope}]`."""
        base = f"{self.prefix}{name}"
        return f"{base}:{scope}" if scope else base


class KVStore(ABC):
    """Interface abstraite du stockage clé/valeur synchrone.

    `get` lève `StorageError` si la lecture échoue (une clé absente retourne None); `set` peut
    lever `StorageError` (ou `StorageQuotaError`). L'appelant traite l'échec comme fatal pour
    l'opération en cours, sans réessai.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Retourne le texte stocké sous `key`, ou None s'il est absent."""
        raise NotImplementedError

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Stocke `value` sous `key` (remplacement complet)."""
        raise NotImplementedError

    @abstractmethod
    def remove(self, key: str) -> None:
        """Supprime `key` (sans effet si absente)."""
        raise NotImplementedError


class InMemoryKVStore(KVStore):
    """Stockage en mémoire (utilisé pour dev/tests), avec quota optionnel en octets."""

    def __init__(self, max_bytes: int | None = None) -> None:
        """Initialise une base mémoire vide."""
        self._vals: dict[str, str] = {}
        self.max_bytes = max_bytes

    def _used_bytes(self, excluding: str | None = None) -> int:
        return sum(
            len(k.encode("utf-8")) + len(v.encode("utf-8"))
            for k, v in self._vals.items()
            if k != excluding
        )

    def get(self, key: str) -> str | None:
        """Retourne la valeur ou None."""
        return self._vals.get(key)

    def set(self, key: str, value: str) -> None:
        """Stocke la valeur; lève `StorageQuotaError` si le quota serait dépassé."""
        if self.max_bytes is not None:
            needed = len(key.encode("utf-8")) + len(value.encode("utf-8"))
            if self._used_bytes(excluding=key) + needed > self.max_bytes:
                raise StorageQuotaError(key)
        self._vals[key] = value

    def remove(self, key: str) -> None:
        """Supprime la clé si présente."""
        self._vals.pop(key, None)

    def keys(self) -> list[str]:
        """Liste les clés présentes (diagnostic)."""
        return list(self._vals)


class JSONFileKVStore(KVStore):
    """Stockage durable local: un fichier par clé dans `directory`.

    Chaque écriture passe par un fichier temporaire puis un renommage atomique: un échec ne
    laisse jamais une valeur précédente à moitié écrite. Le répertoire est créé à la première
    écriture.
    """

    SUFFIX = ".json"

    def __init__(self, directory: str | os.PathLike[str], max_bytes: int | None = None) -> None:
        """Initialise le dépôt.

        Paramètres:
        - directory: répertoire des fichiers de valeurs.
        - max_bytes: taille totale maximale (None = illimitée).
        """
        self.directory = Path(directory)
        self.max_bytes = max_bytes

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def _used_bytes(self, excluding: Path) -> int:
        if not self.directory.exists():
            return 0
        return sum(
            p.stat().st_size
            for p in self.directory.glob(f"*{self.SUFFIX}")
            if p != excluding
        )

    def get(self, key: str) -> str | None:
        """Lit le fichier de la clé, None s'il n'existe pas.

        Un octet invalide est remplacé (le consommateur verra un JSON illisible); toute autre
        erreur d'E/S lève `StorageError`.
        """
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None
        except OSError as err:
            raise StorageError(key, "storage_read_failed") from err

    def set(self, key: str, value: str) -> None:
        """Écrit la valeur de façon atomique (fichier temporaire + `os.replace`)."""
        path = self._path(key)
        data = value.encode("utf-8")
        if self.max_bytes is not None and self._used_bytes(path) + len(data) > self.max_bytes:
            raise StorageQuotaError(key)
        tmp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "wb", dir=self.directory, prefix=".tmp-", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as err:
            if err.errno in _QUOTA_ERRNOS:
                raise StorageQuotaError(key) from err
            raise StorageError(key, "storage_write_failed") from err
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    def remove(self, key: str) -> None:
        """Supprime le fichier de la clé s'il existe."""
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as err:
            raise StorageError(key, "storage_remove_failed") from err


class RedisKVStore(KVStore):
    """Stockage adossé à Redis (clé: `{namespace}{key}`)."""

    def __init__(self, url: str, namespace: str = "") -> None:
        """Crée un client Redis à partir de l'URL fournie."""
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.namespace = namespace

    def _k(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def ping(self) -> bool:
        """Vérifie la connexion (utilisé par le conteneur au démarrage)."""
        return bool(self.client.ping())

    def get(self, key: str) -> str | None:
        """Charge la valeur textuelle, None si absente; Redis indisponible => `StorageError`."""
        try:
            raw = self.client.get(self._k(key))
        except RedisError as err:
            raise StorageError(key, "storage_read_failed") from err
        return raw if raw is None or isinstance(raw, str) else str(raw)

    def set(self, key: str, value: str) -> None:
        """Stocke la valeur; les erreurs Redis deviennent `StorageError`."""
        try:
            self.client.set(self._k(key), value)
        except ResponseError as err:
            if str(err).startswith("OOM"):
                raise StorageQuotaError(key) from err
            raise StorageError(key, "storage_write_failed") from err
        except RedisError as err:
            raise StorageError(key, "storage_write_failed") from err

    def remove(self, key: str) -> None:
        """Supprime la clé."""
        try:
            self.client.delete(self._k(key))
        except RedisError as err:
            raise StorageError(key, "storage_remove_failed") from err


def read_json(store: KVStore, key: str, expected: type, default: Any) -> Any:
    """Charge et désérialise la valeur de `key`.

    Retourne `default` si la clé est absente, si le texte n'est pas du JSON valide ou si le type
    de premier niveau n'est pas `expected`. Les deux derniers cas sont journalisés et comptés.
    Un échec de lecture du stockage (`StorageError`) est propagé: ce n'est pas une absence.
    """
    raw = store.get(key)
    if raw is None:
        return default
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        data = None
    if not isinstance(data, expected):
        STORE_MALFORMED.labels(key=key.split(":", 1)[0]).inc()
        log.warning("store_malformed_content", key=key, expected=expected.__name__)
        return default
    return data


def fetch_json(
    store: KVStore, key: str, expected: type, default: Any, logger: Any = None
) -> Any | None:
    """Comme `read_json`, mais retourne None si le stockage est illisible.

    None signale aux composants qu'il faut abandonner l'opération: reconstruire la collection à
    partir de `default` puis la réécrire effacerait l'état déjà validé.
    """
    try:
        return read_json(store, key, expected, default)
    except StorageError:
        STORE_ERRORS.labels(error_type="read").inc()
        (logger or log).error("store_read_failed", key=key)
        return None


def write_json(store: KVStore, key: str, value: Any) -> None:
    """Sérialise `value` en JSON compact et l'écrit sous `key`."""
    store.set(key, json.dumps(value, ensure_ascii=False, separators=(",", ":")))


def report_write_failure(err: StorageError, key: str, logger: Any = None) -> None:
    """Journalise et compte un échec d'écriture (`quota` ou `write`)."""
    error_type = "quota" if isinstance(err, StorageQuotaError) else "write"
    STORE_ERRORS.labels(error_type=error_type).inc()
    (logger or log).error("store_write_failed", key=key, error_type=error_type)


def commit_json(store: KVStore, key: str, value: Any, logger: Any = None) -> bool:
    """Écrit l'instantané complet `value`; retourne False si le stockage a échoué.

    L'échec est journalisé et compté, jamais propagé: l'état déjà validé reste intact puisque
    chaque écriture remplace la valeur entière.
    """
    try:
        write_json(store, key, value)
    except StorageError as err:
        report_write_failure(err, key, logger)
        return False
    return True
