"""Génération d'identifiants résistants aux collisions.

Les identifiants sont préfixés par type (`apt_`, `notif_`, `idea_`, `cmt_`) et suffixés par un
UUID4 hexadécimal, ce qui évite les collisions entre appels rapprochés.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def new_id(prefix: str) -> str:
    """Retourne un identifiant unique `{prefix}_{uuid4.hex}`."""
    return f"{prefix}_{uuid.uuid4().hex}"


def utc_now_iso() -> str:
    """Horodatage ISO-8601 courant en UTC."""
    return datetime.now(UTC).isoformat()
