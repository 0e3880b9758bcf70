"""
Quick smoke test of the participation engine against a real store.

Checks:
- demo accounts seeded and login works
- signup + duplicate signup rejected
- poll vote and survey completion recorded once
- forum idea, comment (clean and flagged), like toggle
"""

from __future__ import annotations

import argparse
import json
import sys
import uuid

from sharek.core.container import Container
from sharek.core.logging import setup_logging
from sharek.core.settings import get_settings


def run(backend: str, directory: str | None = None) -> dict:
    """Exécute le scénario et retourne un résumé sérialisable."""
    settings = get_settings().model_copy(update={"STORAGE_BACKEND": backend})
    if directory:
        settings = settings.model_copy(update={"STORAGE_DIR": directory})
    c = Container(settings)
    repo = c.user_repo

    # 1) login with a seeded account
    demo = repo.validate_credentials("demo@sharek.gov.qa", "demo123")

    # 2) signup (twice: second must be rejected)
    email = f"smoke-{uuid.uuid4().hex[:8]}@example.com"
    profile = {"email": email, "name": "Smoke Test", "password": "pass1234"}
    created = repo.create_user(profile)
    duplicate = repo.create_user(profile)
    repo.set_current_user(email)

    # 3) participation
    tracker = c.participation_for(email)
    first_vote = tracker.record_vote(1)
    second_vote = tracker.record_vote(1)
    survey = tracker.record_completion(1)

    # 4) forum
    idea = c.forum.create_idea("Smoke idea", "Shaded bus stops", "Smoke Test")
    comment = flagged = None
    if idea.ok and idea.idea:
        comment = c.forum.add_comment(idea.idea.id, "Great suggestion", "Smoke Test")
        flagged = c.forum.add_comment(idea.idea.id, "I hate this", "Smoke Test")
        c.forum.toggle_like(idea.idea.id)

    return {
        "storage_backend": c.storage_backend,
        "demo_login": demo is not None,
        "signup": created is not None,
        "duplicate_signup_rejected": duplicate is None,
        "vote_recorded_once": first_vote and not second_vote,
        "survey_recorded": survey,
        "idea_created": idea.ok,
        "comment_added": bool(comment and comment.ok),
        "flagged_comment_rejected": bool(flagged and flagged.reason == "flagged_content"),
        "current_user": email if repo.get_current_user() else None,
    }


def main() -> None:
    """
    Point d'entrée principal du test de fumée.

    Affiche le résumé JSON du scénario sur la sortie standard; code de sortie 1 en cas d'échec.
    """
    parser = argparse.ArgumentParser()
    parser.add_argument("--backend", choices=["memory", "file", "redis"], default="memory")
    parser.add_argument("--dir", dest="directory", help="Storage directory for --backend file")
    args = parser.parse_args()

    setup_logging(get_settings().LOG_LEVEL)
    summary = run(args.backend, args.directory)
    print(json.dumps(summary, indent=2))
    ok = all(v for k, v in summary.items() if k != "storage_backend")
    print("Smoke test OK" if ok else "Smoke test FAILED")
    if not ok:
        sys.exit(1)


if __name__ == "__main__":  # pragma: no cover - script entry
    main()
