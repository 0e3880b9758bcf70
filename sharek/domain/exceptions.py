"""Exceptions du domaine.

Seules les défaillances du stockage sont levées; les autres cas d'erreur (enregistrement absent,
contrainte violée, contenu signalé) sont rendus sous forme de valeurs sentinelles par les
composants.
"""

from __future__ import annotations


class StorageError(Exception):
    """Échec d'écriture/lecture du stockage clé/valeur pour une opération donnée."""

    def __init__(self, key: str, message: str = "storage_error") -> None:
        super().__init__(f"{message}: {key}")
        self.key = key
        self.message = message


class StorageQuotaError(StorageError):
    """Le stockage a refusé l'écriture faute de place."""

    def __init__(self, key: str, message: str = "storage_quota_exceeded") -> None:
        super().__init__(key, message)
