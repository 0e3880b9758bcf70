"""
Dépôt des fils de discussion du forum.

Ce module implémente `ForumThreadStore`: création d'idées (les plus récentes en tête), bascule
« j'aime » et commentaires. Toute contribution libre passe par le filtre de modération avant la
moindre mutation; chaque mutation réécrit la liste complète des fils.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

import structlog
from pydantic import ValidationError

from sharek.domain.entities import Comment, ForumIdea
from sharek.domain.identifiers import new_id
from sharek.domain.moderation import find_flagged_terms
from sharek.domain.exceptions import StorageError
from sharek.infra.kv_store import KVStore, StorageKeys, commit_json, fetch_json
from sharek.infra.monitoring.metrics import MODERATION_REJECTIONS, STORE_ERRORS

RejectReason = Literal["empty_content", "flagged_content", "idea_not_found", "storage_error"]

# Discussions d'exemple publiées sur un forum vierge
DEFAULT_IDEAS: tuple[dict, ...] = (
    {
        "id": "idea_default_1",
        "title": "Improving Public Transportation in Qatar",
        "description": (
            "Suggestions for improving public transport network and increasing efficiency"
        ),
        "author": "Ahmed Al-Mansoori",
        "category": "Transportation",
        "likes": 24,
        "views": 156,
        "comments": [
            {
                "id": "cmt_default_1",
                "author": "Sara Al-Kuwari",
                "text": "Excellent idea! We really need better public transport",
            }
        ],
    },
    {
        "id": "idea_default_2",
        "title": "Future of Digital Education",
        "description": (
            "How can we develop digital education to keep up with technological advances?"
        ),
        "author": "Fatima Al-Ansari",
        "category": "Education",
        "likes": 18,
        "views": 89,
        "comments": [],
    },
)


@dataclass
class ForumResult:
    """Résultat d'une contribution au forum.

    `ok` est faux en cas de rejet; `reason` précise alors la cause. Aucun état n'est modifié
    lors d'un rejet.
    """

    ok: bool
    reason: RejectReason | None = None
    idea: ForumIdea | None = None
    comment: Comment | None = None


class ForumThreadStore:
    """Liste persistée des idées du forum et de leurs commentaires."""

    def __init__(
        self,
        store: KVStore,
        keys: StorageKeys | None = None,
        *,
        seed_defaults: bool = False,
        flagged_terms: Callable[[str], list[str]] = find_flagged_terms,
    ) -> None:
        """Initialise le dépôt.

        Paramètres:
        - store: stockage clé/valeur.
        - keys: espace de noms des clés persistées.
        - seed_defaults: publie les discussions d'exemple si aucune liste n'est encore stockée.
        - flagged_terms: filtre de modération (termes interdits trouvés dans un texte).
        """
        self.store = store
        self.keys = keys or StorageKeys()
        self._key = self.keys.key(StorageKeys.FORUM_IDEAS)
        self._flagged_terms = flagged_terms
        self._log = structlog.get_logger(__name__).bind(component="forum_store")
        if seed_defaults and self._is_absent():
            self._seed_defaults()

    def _is_absent(self) -> bool:
        try:
            return self.store.get(self._key) is None
        except StorageError:
            STORE_ERRORS.labels(error_type="read").inc()
            self._log.error("store_read_failed", key=self._key)
            return False

    def _seed_defaults(self) -> None:
        ideas = []
        for raw in DEFAULT_IDEAS:
            idea = ForumIdea.model_validate(raw)
            idea.replies = len(idea.comments)
            ideas.append(idea)
        if self._save(ideas):
            self._log.info("forum_defaults_seeded", count=len(ideas))

    def _load(self) -> list[ForumIdea] | None:
        """Fils désérialisés; None si le stockage est illisible."""
        records = fetch_json(self.store, self._key, list, [], self._log)
        if records is None:
            return None
        ideas: list[ForumIdea] = []
        for raw in records:
            try:
                ideas.append(ForumIdea.model_validate(raw))
            except ValidationError:
                self._log.warning("forum_idea_dropped", reason="invalid_record")
        return ideas

    def _save(self, ideas: list[ForumIdea]) -> bool:
        return commit_json(
            self.store, self._key, [i.model_dump(mode="json") for i in ideas], self._log
        )

    def _reject_flagged(self, target: str, *texts: str) -> bool:
        terms = [t for text in texts for t in self._flagged_terms(text)]
        if terms:
            MODERATION_REJECTIONS.labels(target=target).inc()
            self._log.info("forum_submission_rejected", target=target, matches=len(terms))
            return True
        return False

    def list_ideas(self) -> list[ForumIdea]:
        """Retourne les idées, les plus récentes en premier (vide si le stockage est illisible)."""
        return self._load() or []

    def get_idea(self, idea_id: str) -> ForumIdea | None:
        """Retourne l'idée `idea_id`, ou None."""
        return next((i for i in self._load() or [] if i.id == idea_id), None)

    def create_idea(
        self,
        title: str,
        description: str,
        author: str,
        avatar: str | None = None,
        image: str | None = None,
        category: str = "General",
    ) -> ForumResult:
        """Publie une nouvelle idée en tête du forum.

        Rejets (rien n'est persisté):
        - `empty_content`: titre ou description vide.
        - `flagged_content`: titre ou description signalé par la modération.
        """
        if not title.strip() or not description.strip():
            return ForumResult(ok=False, reason="empty_content")
        if self._reject_flagged("idea", title, description):
            return ForumResult(ok=False, reason="flagged_content")
        idea = ForumIdea(
            id=new_id("idea"),
            title=title,
            description=description,
            author=author,
            avatar=avatar,
            category=category,
            image=image,
        )
        ideas = self._load()
        if ideas is None:
            return ForumResult(ok=False, reason="storage_error")
        ideas.insert(0, idea)
        if not self._save(ideas):
            return ForumResult(ok=False, reason="storage_error")
        self._log.info("forum_idea_created", idea_id=idea.id)
        return ForumResult(ok=True, idea=idea)

    def toggle_like(self, idea_id: str) -> ForumIdea | None:
        """Inverse `is_liked` et ajuste `likes` de ±1.

        Un seul booléen global par idée (pas par utilisateur): rien n'empêche de basculer
        indéfiniment.
        """
        ideas = self._load()
        if ideas is None:
            return None
        idea = next((i for i in ideas if i.id == idea_id), None)
        if idea is None:
            return None
        idea.is_liked = not idea.is_liked
        idea.likes += 1 if idea.is_liked else -1
        if not self._save(ideas):
            return None
        return idea

    def add_comment(
        self, idea_id: str, text: str, author: str, avatar: str | None = None
    ) -> ForumResult:
        """Ajoute un commentaire et incrémente `replies` (invariant replies == len(comments)).

        Rejets: `empty_content`, `flagged_content` (vérifié avant toute lecture/écriture du
        forum) et `idea_not_found`.
        """
        if not text.strip():
            return ForumResult(ok=False, reason="empty_content")
        if self._reject_flagged("comment", text):
            return ForumResult(ok=False, reason="flagged_content")
        ideas = self._load()
        if ideas is None:
            return ForumResult(ok=False, reason="storage_error")
        idea = next((i for i in ideas if i.id == idea_id), None)
        if idea is None:
            return ForumResult(ok=False, reason="idea_not_found")
        comment = Comment(id=new_id("cmt"), author=author, text=text, avatar=avatar)
        idea.comments.append(comment)
        idea.replies = len(idea.comments)
        if not self._save(ideas):
            return ForumResult(ok=False, reason="storage_error")
        return ForumResult(ok=True, idea=idea, comment=comment)
