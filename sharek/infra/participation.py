"""Suivi de participation: votes et sondages enregistrés au plus une fois.

- ParticipationTracker: deux ensembles persistés d'identifiants numériques (sondages votés,
  enquêtes complétées) avec insertion idempotente.

Règle de clé:
    {prefix}voted_polls[:{scope}] / {prefix}completed_surveys[:{scope}]

Sans `scope`, les ensembles sont partagés par toute la session (comportement d'origine). Avec
`scope=<email>`, chaque utilisateur a ses propres ensembles.

L'interface désactive le bouton de soumission une fois l'appartenance vraie, mais c'est le tracker
qui fait foi: une soumission répétée ne peut pas incrémenter deux fois un total affiché.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from sharek.infra.kv_store import KVStore, StorageKeys, commit_json, fetch_json
from sharek.infra.monitoring.metrics import PARTICIPATION_RECORDS

log = structlog.get_logger(__name__)


def normalize_id(item_id: Any) -> int | None:
    """Identifiant de sondage/enquête sous forme d'entier, ou None s'il est invalide.

    Un flottant entier (`2.0`) devient `2`; booléens, chaînes et flottants non entiers sont
    refusés.
    """
    if isinstance(item_id, bool):
        return None
    if isinstance(item_id, int):
        return item_id
    if isinstance(item_id, float) and item_id.is_integer():
        return int(item_id)
    return None


@dataclass
class _IdSet:
    """Ensemble persisté d'identifiants (liste JSON triée sous `key`)."""

    store: KVStore
    key: str
    kind: str

    def load(self) -> set[int] | None:
        """Charge l'ensemble; entrées invalides ignorées, None si le stockage est illisible."""
        raw = fetch_json(self.store, self.key, list, [], log)
        if raw is None:
            return None
        ids: set[int] = set()
        for value in raw:
            item_id = normalize_id(value)
            if item_id is not None:
                ids.add(item_id)
        return ids

    def contains(self, item_id: int) -> bool:
        return item_id in (self.load() or ())

    def add(self, item_id: int) -> bool:
        """Insère `item_id`; True si nouvel enregistrement, False si déjà présent ou échec."""
        current = self.load()
        if current is None:
            PARTICIPATION_RECORDS.labels(kind=self.kind, result="failed").inc()
            return False
        if item_id in current:
            PARTICIPATION_RECORDS.labels(kind=self.kind, result="duplicate").inc()
            return False
        current.add(item_id)
        if not commit_json(self.store, self.key, sorted(current)):
            PARTICIPATION_RECORDS.labels(kind=self.kind, result="failed").inc()
            return False
        PARTICIPATION_RECORDS.labels(kind=self.kind, result="recorded").inc()
        return True


@dataclass
class ParticipationTracker:
    """Suivi idempotent des votes de sondages et des enquêtes complétées."""

    store: KVStore
    keys: StorageKeys = field(default_factory=StorageKeys)
    scope: str | None = None

    def __post_init__(self) -> None:
        """Prépare les deux ensembles selon la portée choisie."""
        self._polls = _IdSet(
            self.store, self.keys.key(StorageKeys.VOTED_POLLS, self.scope), "poll"
        )
        self._surveys = _IdSet(
            self.store, self.keys.key(StorageKeys.COMPLETED_SURVEYS, self.scope), "survey"
        )
        self._log = structlog.get_logger(__name__).bind(
            component="participation_tracker", scoped=self.scope is not None
        )

    def _checked_id(self, item_id: Any, kind: str) -> int | None:
        normalized = normalize_id(item_id)
        if normalized is None:
            PARTICIPATION_RECORDS.labels(kind=kind, result="invalid").inc()
            self._log.info("participation_rejected", kind=kind, reason="invalid_id")
        return normalized

    def has_voted(self, poll_id: int) -> bool:
        """Indique si le sondage `poll_id` a déjà reçu un vote."""
        item_id = normalize_id(poll_id)
        return item_id is not None and self._polls.contains(item_id)

    def has_completed(self, survey_id: int) -> bool:
        """Indique si l'enquête `survey_id` a déjà été complétée."""
        item_id = normalize_id(survey_id)
        return item_id is not None and self._surveys.contains(item_id)

    def record_vote(self, poll_id: int) -> bool:
        """Enregistre un vote (sans effet si déjà présent; False si l'id est invalide)."""
        item_id = self._checked_id(poll_id, "poll")
        if item_id is None:
            return False
        recorded = self._polls.add(item_id)
        self._log.info("poll_vote", poll_id=item_id, recorded=recorded)
        return recorded

    def record_completion(self, survey_id: int) -> bool:
        """Enregistre une enquête complétée (sans effet si déjà présente)."""
        item_id = self._checked_id(survey_id, "survey")
        if item_id is None:
            return False
        recorded = self._surveys.add(item_id)
        self._log.info("survey_completion", survey_id=item_id, recorded=recorded)
        return recorded

    def voted_polls(self) -> frozenset[int]:
        """Instantané des sondages votés (vide si le stockage est illisible)."""
        return frozenset(self._polls.load() or ())

    def completed_surveys(self) -> frozenset[int]:
        """Instantané des enquêtes complétées."""
        return frozenset(self._surveys.load() or ())

    def display_total(self, base_total: int, poll_id: int) -> int:
        """Total de votes affiché: `base_total`, plus un si l'utilisateur a voté."""
        return base_total + (1 if self.has_voted(poll_id) else 0)

    def display_participants(self, base_participants: int, survey_id: int) -> int:
        """Nombre de participants affiché, plus un si l'enquête est complétée."""
        return base_participants + (1 if self.has_completed(survey_id) else 0)
