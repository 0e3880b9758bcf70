"""
Entités du domaine métier.

Ce module définit les modèles de données persistés par le moteur de participation: agrégat
utilisateur (profil, préférences, compteurs, évaluations, rendez-vous, notifications) et fils de
discussion du forum.
"""

from typing import Literal

from pydantic import BaseModel, Field

from sharek.domain.identifiers import utc_now_iso

Language = Literal["en", "ar"]
Theme = Literal["light", "dark"]
AppointmentStatus = Literal["scheduled", "completed", "cancelled"]
NotificationType = Literal["info", "warning", "success"]


class UserProfile(BaseModel):
    """Identité de l'utilisateur; `email` sert de clé primaire."""

    email: str
    name: str
    password: str
    id: str | None = None
    phone: str | None = None
    nationality: str | None = None
    date_of_birth: str | None = None
    address: str | None = None
    profile_photo: str | None = None
    created: str = Field(default_factory=utc_now_iso)


class UserSettings(BaseModel):
    """Préférences utilisateur (modifiées uniquement par fusion)."""

    notifications: bool = True
    email_notifications: bool = True
    sms_notifications: bool = True
    language: Language = "en"
    theme: Theme = "light"


class SatisfactionRating(BaseModel):
    """Évaluation d'un service (ajout seul, doublons permis)."""

    service: str
    rating: float
    date: str = Field(default_factory=utc_now_iso)


class ServiceCenterRating(BaseModel):
    """Évaluation d'un centre de service (une seule par `center_id`)."""

    center_id: int
    center_name: str
    rating: float
    date: str = Field(default_factory=utc_now_iso)


class Appointment(BaseModel):
    """Rendez-vous réservé par l'utilisateur."""

    id: str
    service: str
    date: str
    status: AppointmentStatus = "scheduled"


class Notification(BaseModel):
    """Notification in-app (la plus récente en tête de liste)."""

    id: str
    title: str
    message: str
    date: str = Field(default_factory=utc_now_iso)
    read: bool = False
    type: NotificationType = "info"
    appointment_id: str | None = None


class UserData(BaseModel):
    """Agrégat racine: l'enregistrement complet d'un utilisateur."""

    profile: UserProfile
    settings: UserSettings = Field(default_factory=UserSettings)
    feedback_count: int = 0
    satisfaction_ratings: list[SatisfactionRating] = Field(default_factory=list)
    service_center_ratings: list[ServiceCenterRating] = Field(default_factory=list)
    appointments: list[Appointment] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)


class Comment(BaseModel):
    """Commentaire d'une idée du forum (immuable une fois créé)."""

    id: str
    author: str
    text: str
    avatar: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)


class ForumIdea(BaseModel):
    """Fil de discussion du forum.

    `likes`/`is_liked` évoluent ensemble et `replies` reflète `len(comments)`.
    """

    id: str
    title: str
    description: str
    author: str
    avatar: str | None = None
    timestamp: str = Field(default_factory=utc_now_iso)
    category: str = "General"
    likes: int = 0
    replies: int = 0
    views: int = 1
    is_liked: bool = False
    comments: list[Comment] = Field(default_factory=list)
    image: str | None = None
