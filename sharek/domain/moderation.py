"""
Filtre de modération des contributions libres (idées, commentaires).

Test de sous-chaîne insensible à la casse contre une liste fixe de mots interdits (EN/AR). Aucune
normalisation autre que la mise en minuscules et aucune détection de frontière de mot: une
occurrence n'importe où dans le texte suffit. Le filtre laisse passer tout le reste; c'est un
garde-fou best-effort, pas une frontière de sécurité.
"""

from __future__ import annotations

from collections.abc import Iterable

BLOCKLIST: tuple[str, ...] = (
    "hate",
    "stupid",
    "idiot",
    "damn",
    "hell",
    "kill",
    "die",
    "bomb",
    "attack",
    "violence",
    # Arabic
    "غبي",
    "احمق",
    "كراهية",
    "قتل",
    "موت",
    "عنف",
    "هجوم",
)


def find_flagged_terms(text: str | None, keywords: Iterable[str] = BLOCKLIST) -> list[str]:
    """Retourne les entrées de la liste trouvées dans `text` (ordre de la liste)."""
    if not text:
        return []
    lowered = text.lower()
    return [kw for kw in keywords if kw.lower() in lowered]


def is_flagged(text: str | None, keywords: Iterable[str] = BLOCKLIST) -> bool:
    """Indique si `text` contient au moins un mot interdit."""
    return bool(find_flagged_terms(text, keywords))
