# ============================================================
# Module : sharek/infra/monitoring/metrics.py
# Objet  : Compteurs Prometheus du moteur de participation.
# ============================================================
"""Métriques Prometheus du moteur de participation.

Ce module définit les compteurs exposés par les composants (modération, participation, stockage,
amorçage). Les labels restent à cardinalité bornée: jamais d'email ni de texte libre.
"""

from __future__ import annotations

from prometheus_client import Counter, generate_latest

MODERATION_REJECTIONS = Counter(
    "sharek_moderation_rejections_total",
    "Contributions rejetées par le filtre de modération",
    ["target"],
)
PARTICIPATION_RECORDS = Counter(
    "sharek_participation_records_total",
    "Enregistrements de votes/sondages (recorded|duplicate|failed|invalid)",
    ["kind", "result"],
)
STORE_ERRORS = Counter(
    "sharek_store_errors_total",
    "Échecs d'E/S du stockage clé/valeur (read|write|quota)",
    ["error_type"],
)
STORE_MALFORMED = Counter(
    "sharek_store_malformed_total",
    "Contenus illisibles remplacés par une collection vide",
    ["key"],
)
USERS_SEEDED = Counter("sharek_users_seeded_total", "Comptes de démonstration créés")


def render_latest() -> bytes:
    """Sérialise les métriques au format texte Prometheus."""
    return generate_latest()
