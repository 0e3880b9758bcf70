"""
Dépôt des enregistrements utilisateur.

Ce module implémente le dépôt `UserRepository`, propriétaire de la collection `users` (indexée par
email) dans le stockage clé/valeur: création, lecture, mises à jour par fusion, validation des
identifiants, amorçage des comptes de démonstration et marqueur de session courante.

Chaque mutation relit la collection complète, applique le changement sur la copie désérialisée
puis réécrit la collection entière: il n'existe pas d'écriture partielle au niveau du stockage.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from sharek.domain.auth import PasswordScheme, check_password, prepare_password
from sharek.domain.entities import (
    Appointment,
    Notification,
    NotificationType,
    SatisfactionRating,
    ServiceCenterRating,
    UserData,
    UserProfile,
    UserSettings,
)
from sharek.domain.exceptions import StorageError
from sharek.domain.identifiers import new_id, utc_now_iso
from sharek.infra.kv_store import (
    KVStore,
    StorageKeys,
    commit_json,
    fetch_json,
    report_write_failure,
)
from sharek.infra.monitoring.metrics import STORE_ERRORS, USERS_SEEDED

# Comptes de démonstration (identifiants de test documentés)
DEFAULT_USERS: tuple[dict[str, str], ...] = (
    {
        "id": "test1",
        "name": "Ahmed Al-Mansouri",
        "email": "test@sharek.gov.qa",
        "password": "test123",
        "phone": "+974 5555 1234",
        "nationality": "Qatari",
    },
    {
        "id": "demo1",
        "name": "Sara Al-Thani",
        "email": "demo@sharek.gov.qa",
        "password": "demo123",
        "phone": "+974 5555 5678",
        "nationality": "Qatari",
    },
    {
        "id": "admin1",
        "name": "Mohamed Al-Kuwari",
        "email": "admin@sharek.gov.qa",
        "password": "admin123",
        "phone": "+974 5555 9999",
        "nationality": "Qatari",
    },
)

WELCOME_TITLE = "Welcome to Sharek!"
WELCOME_MESSAGE = "Thank you for joining Qatar's digital government platform."
CANCELLED_TITLE = "Appointment Cancelled"
CANCELLED_MESSAGE = (
    "Your appointment has been cancelled successfully. You can book a new appointment anytime"
)

# Taille maximale du fil de notifications (les plus anciennes sont abandonnées)
MAX_NOTIFICATIONS = 50


class UserRepository:
    """Dépôt des agrégats `UserData` adossé à un `KVStore`.

    L'amorçage des comptes de démonstration est une étape explicite exécutée à la construction
    (`seed_defaults=True`): l'instance retournée est prête à l'emploi et `get_all_users` n'a
    aucun effet de bord.
    """

    def __init__(
        self,
        store: KVStore,
        keys: StorageKeys | None = None,
        *,
        seed_defaults: bool = True,
        password_scheme: PasswordScheme = "plaintext",
    ) -> None:
        """Initialise le dépôt et amorce les comptes par défaut si demandé.

        Paramètres:
        - store: stockage clé/valeur (mémoire, fichiers ou Redis).
        - keys: espace de noms des clés persistées.
        - seed_defaults: crée les trois comptes de démonstration si la collection est vide.
        - password_scheme: "plaintext" (comparaison directe) ou "pbkdf2_sha256".
        """
        self.store = store
        self.keys = keys or StorageKeys()
        self.password_scheme = password_scheme
        self._users_key = self.keys.key(StorageKeys.USERS)
        self._session_key = self.keys.key(StorageKeys.CURRENT_USER_EMAIL)
        self._log = structlog.get_logger(__name__).bind(component="user_repository")
        if seed_defaults:
            self.seed_default_users()

    # ----------------------------------------------------------------- persistence
    def _load(self) -> dict[str, UserData] | None:
        """Collection désérialisée; None si le stockage est illisible."""
        raw = fetch_json(self.store, self._users_key, dict, {}, self._log)
        if raw is None:
            return None
        users: dict[str, UserData] = {}
        for email, record in raw.items():
            try:
                users[email] = UserData.model_validate(record)
            except ValidationError:
                self._log.warning("user_record_dropped", reason="invalid_record")
        return users

    def _save(self, users: Mapping[str, UserData]) -> bool:
        payload = {email: user.model_dump(mode="json") for email, user in users.items()}
        return commit_json(self.store, self._users_key, payload, self._log)

    def _update(self, email: str, change: Callable[[UserData], bool | None]) -> UserData | None:
        """Applique `change` à l'agrégat de `email` et réécrit la collection.

        `change` retourne False pour abandonner sans écrire. Retourne l'agrégat mis à jour, ou
        None si l'utilisateur est absent, si le changement est abandonné ou si l'écriture échoue.
        """
        users = self._load()
        user = users.get(email) if users is not None else None
        if user is None:
            return None
        if change(user) is False:
            return None
        if not self._save(users):
            return None
        return user

    # ----------------------------------------------------------------- seeding
    def seed_default_users(self) -> int:
        """Crée les comptes de démonstration si la collection est vide.

        Retour: nombre de comptes créés (0 si la collection contenait déjà des utilisateurs ou si
        le stockage est illisible).
        """
        users = self._load()
        if users is None or users:
            return 0
        created = 0
        for profile in DEFAULT_USERS:
            if self.create_user(profile) is not None:
                created += 1
        USERS_SEEDED.inc(created)
        self._log.info("default_users_seeded", count=created)
        return created

    # ----------------------------------------------------------------- queries
    def get_user(self, email: str) -> UserData | None:
        """Retourne l'agrégat complet de `email`, ou None."""
        users = self._load()
        return users.get(email) if users is not None else None

    def get_all_users(self) -> dict[str, UserData]:
        """Retourne toute la collection, indexée par email (vide si le stockage est illisible)."""
        return self._load() or {}

    def email_exists(self, email: str) -> bool:
        """Indique si un compte existe déjà pour `email`."""
        return self.get_user(email) is not None

    def validate_credentials(self, email: str, password: str) -> UserData | None:
        """Retourne l'agrégat si le mot de passe correspond, sinon None.

        Aucune temporisation ni limitation de tentatives.
        """
        user = self.get_user(email)
        if user is None:
            self._log.info("credentials_rejected", reason="unknown_user")
            return None
        if not check_password(password, user.profile.password, self.password_scheme):
            self._log.info("credentials_rejected", reason="password_mismatch")
            return None
        return user

    def get_unread_notification_count(self, email: str) -> int:
        """Nombre de notifications non lues (0 si l'utilisateur est absent)."""
        user = self.get_user(email)
        return sum(1 for n in user.notifications if not n.read) if user else 0

    def get_service_center_rating(self, email: str, center_id: int) -> float | None:
        """Note donnée par l'utilisateur au centre `center_id`, ou None."""
        user = self.get_user(email)
        if user is None:
            return None
        found = next((r for r in user.service_center_ratings if r.center_id == center_id), None)
        return found.rating if found else None

    # ----------------------------------------------------------------- creation
    def create_user(self, profile: UserProfile | Mapping[str, Any]) -> UserData | None:
        """Crée et persiste un nouvel agrégat.

        Préférences par défaut et une notification de bienvenue. Retourne None si l'email est
        déjà utilisé (dépôt inchangé), si le profil est invalide ou si l'écriture échoue.
        """
        if not isinstance(profile, UserProfile):
            try:
                profile = UserProfile.model_validate(dict(profile))
            except ValidationError:
                self._log.info("user_create_rejected", reason="invalid_profile")
                return None
        if not profile.email.strip():
            self._log.info("user_create_rejected", reason="empty_email")
            return None
        users = self._load()
        if users is None:
            return None
        if profile.email in users:
            self._log.info("user_create_rejected", reason="duplicate_email")
            return None
        profile = profile.model_copy(
            update={
                "id": profile.id or new_id("user"),
                "password": prepare_password(profile.password, self.password_scheme),
            }
        )
        user = UserData(
            profile=profile,
            settings=UserSettings(),
            notifications=[
                Notification(
                    id=new_id("notif"),
                    title=WELCOME_TITLE,
                    message=WELCOME_MESSAGE,
                    type="success",
                )
            ],
        )
        users[profile.email] = user
        if not self._save(users):
            return None
        self._log.info("user_created", user_id=profile.id)
        return user

    # ----------------------------------------------------------------- merge updates
    def update_user_profile(
        self, email: str, profile_updates: Mapping[str, Any]
    ) -> UserData | None:
        """Fusionne `profile_updates` dans le profil existant.

        Les champs absents restent inchangés. Le changement d'email (clé primaire) est refusé.
        """
        updates = dict(profile_updates)
        if "email" in updates and updates["email"] != email:
            self._log.info("profile_update_rejected", reason="email_is_primary_key")
            return None
        if "password" in updates and isinstance(updates["password"], str):
            updates["password"] = prepare_password(updates["password"], self.password_scheme)

        def change(user: UserData) -> bool:
            try:
                user.profile = UserProfile.model_validate(
                    {**user.profile.model_dump(), **updates}
                )
            except ValidationError:
                self._log.info("profile_update_rejected", reason="invalid_fields")
                return False
            return True

        return self._update(email, change)

    def update_user_settings(
        self, email: str, settings_updates: Mapping[str, Any]
    ) -> UserData | None:
        """Fusionne `settings_updates` dans les préférences existantes."""
        updates = dict(settings_updates)

        def change(user: UserData) -> bool:
            try:
                user.settings = UserSettings.model_validate(
                    {**user.settings.model_dump(), **updates}
                )
            except ValidationError:
                self._log.info("settings_update_rejected", reason="invalid_fields")
                return False
            return True

        return self._update(email, change)

    # ----------------------------------------------------------------- counters & ratings
    def add_feedback(self, email: str) -> bool:
        """Incrémente `feedback_count` de un."""

        def change(user: UserData) -> None:
            user.feedback_count += 1

        return self._update(email, change) is not None

    def add_satisfaction_rating(self, email: str, service: str, rating: float) -> bool:
        """Ajoute une évaluation de service (sans contrainte d'unicité)."""

        def change(user: UserData) -> None:
            user.satisfaction_ratings.append(SatisfactionRating(service=service, rating=rating))

        return self._update(email, change) is not None

    def add_service_center_rating(
        self, email: str, center_id: int, center_name: str, rating: float
    ) -> bool:
        """Insère ou remplace (à la même position) la note du centre `center_id`."""

        def change(user: UserData) -> None:
            entry = ServiceCenterRating(
                center_id=center_id, center_name=center_name, rating=rating
            )
            ratings = user.service_center_ratings
            for i, existing in enumerate(ratings):
                if existing.center_id == center_id:
                    ratings[i] = entry
                    return
            ratings.append(entry)

        return self._update(email, change) is not None

    # ----------------------------------------------------------------- appointments
    def add_appointment(self, email: str, service: str, date: str) -> str:
        """Ajoute un rendez-vous `scheduled`; retourne son id ou "" si l'utilisateur est absent."""
        appointment_id = new_id("apt")

        def change(user: UserData) -> None:
            user.appointments.append(Appointment(id=appointment_id, service=service, date=date))

        return appointment_id if self._update(email, change) is not None else ""

    def _set_appointment_status(
        self,
        email: str,
        appointment_id: str,
        status: str,
        after: Callable[[UserData], None] | None = None,
    ) -> bool:
        def change(user: UserData) -> bool:
            for appointment in user.appointments:
                if appointment.id == appointment_id and appointment.status == "scheduled":
                    appointment.status = status  # type: ignore[assignment]
                    if after is not None:
                        after(user)
                    return True
            return False

        return self._update(email, change) is not None

    def cancel_appointment(self, email: str, appointment_id: str) -> bool:
        """Passe un rendez-vous `scheduled` à `cancelled`.

        Les notifications liées au rendez-vous (`appointment_id`) sont retirées et un avis
        d'annulation est inséré en tête, dans la même écriture.
        """

        def notify(user: UserData) -> None:
            user.notifications = [
                n for n in user.notifications if n.appointment_id != appointment_id
            ]
            _push_notification(
                user,
                Notification(
                    id=new_id("notif"),
                    title=CANCELLED_TITLE,
                    message=CANCELLED_MESSAGE,
                    type="info",
                ),
            )

        return self._set_appointment_status(email, appointment_id, "cancelled", notify)

    def complete_appointment(self, email: str, appointment_id: str) -> bool:
        """Passe un rendez-vous `scheduled` à `completed`."""
        return self._set_appointment_status(email, appointment_id, "completed")

    # ----------------------------------------------------------------- notifications
    def add_notification(
        self,
        email: str,
        title: str,
        message: str,
        type: NotificationType = "info",
        appointment_id: str | None = None,
    ) -> str:
        """Insère une notification en tête de liste; retourne son id ou "".

        Seules les `MAX_NOTIFICATIONS` plus récentes sont conservées. `appointment_id` relie la
        notification à un rendez-vous (retirée si celui-ci est annulé).
        """
        notification = Notification(
            id=new_id("notif"),
            title=title,
            message=message,
            date=utc_now_iso(),
            type=type,
            appointment_id=appointment_id,
        )

        def change(user: UserData) -> None:
            _push_notification(user, notification)

        return notification.id if self._update(email, change) is not None else ""

    def mark_notification_as_read(self, email: str, notification_id: str) -> bool:
        """Marque la notification comme lue; False si utilisateur ou notification absent."""

        def change(user: UserData) -> bool:
            found = next((n for n in user.notifications if n.id == notification_id), None)
            if found is None:
                return False
            found.read = True
            return True

        return self._update(email, change) is not None

    # ----------------------------------------------------------------- session marker
    def set_current_user(self, email: str) -> bool:
        """Enregistre `email` comme session active."""
        try:
            self.store.set(self._session_key, email)
        except StorageError as err:
            report_write_failure(err, self._session_key, self._log)
            return False
        return True

    def get_current_user(self) -> UserData | None:
        """Agrégat de la session active, ou None."""
        try:
            email = self.store.get(self._session_key)
        except StorageError:
            STORE_ERRORS.labels(error_type="read").inc()
            self._log.error("store_read_failed", key=self._session_key)
            return None
        return self.get_user(email) if email else None

    def clear_current_user(self) -> bool:
        """Efface le marqueur de session."""
        try:
            self.store.remove(self._session_key)
        except StorageError as err:
            report_write_failure(err, self._session_key, self._log)
            return False
        return True


def _push_notification(user: UserData, notification: Notification) -> None:
    user.notifications.insert(0, notification)
    del user.notifications[MAX_NOTIFICATIONS:]
