"""
Vérification des identifiants utilisateur.

Par défaut (`plaintext`), le mot de passe stocké est comparé tel quel à la valeur fournie, comme
dans l'application d'origine. Le schéma `pbkdf2_sha256` stocke un hash PBKDF2 et vérifie via
passlib; il est destiné aux déploiements sensibles.
"""

from typing import Literal

from passlib.context import CryptContext

PasswordScheme = Literal["plaintext", "pbkdf2_sha256"]

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(p: str) -> str:
    """Hache un mot de passe en utilisant PBKDF2."""
    return pwd_context.hash(p)


def verify_password(p: str, h: str) -> bool:
    """Vérifie un mot de passe contre son hash (False si le hash est illisible)."""
    try:
        return pwd_context.verify(p, h)
    except (TypeError, ValueError):
        return False


def prepare_password(p: str, scheme: PasswordScheme = "plaintext") -> str:
    """Retourne la valeur à persister pour le mot de passe `p`."""
    if scheme == "plaintext":
        return p
    return hash_password(p)


def check_password(supplied: str, stored: str, scheme: PasswordScheme = "plaintext") -> bool:
    """Compare la valeur fournie à la valeur stockée selon le schéma."""
    if scheme == "plaintext":
        return supplied == stored
    return verify_password(supplied, stored)
