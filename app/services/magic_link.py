"""
Service: magic_link.py
- Émet et vérifie les jetons de connexion par lien magique (itsdangerous, signés + horodatés).
- L'envoi d'email est hors périmètre : le lien est journalisé (et renvoyé en DEBUG).
"""
import logging
import secrets
from typing import Optional
from urllib.parse import urlencode

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from app.config.settings import settings

logger = logging.getLogger(__name__)

_SALT = "magic-link"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(settings.MAGIC_LINK_SECRET, salt=_SALT)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def issue_token(email: str) -> str:
    """Jeton signé contenant l'email et un nonce aléatoire."""
    return _serializer().dumps({"email": normalize_email(email), "nonce": secrets.token_hex(16)})


def verify_token(token: str, max_age: Optional[int] = None) -> Optional[str]:
    """Retourne l'email si le jeton est valide et non expiré, sinon None."""
    ttl = settings.MAGIC_LINK_TTL_SECONDS if max_age is None else max_age
    try:
        payload = _serializer().loads(token, max_age=ttl)
    except SignatureExpired:
        logger.warning("Magic link expired")
        return None
    except BadSignature:
        logger.warning("Magic link signature invalid")
        return None
    email = payload.get("email") if isinstance(payload, dict) else None
    return normalize_email(email) if email else None


def build_magic_link(token: str) -> str:
    base = settings.PUBLIC_APP_URL.rstrip("/")
    return f"{base}/auth/verify?{urlencode({'token': token})}"
