"""
Module routes/auth.py

Rôle:
- Connexion des participants par lien magique (sans mot de passe).
- Pose/supprime le cookie de session HttpOnly.
- Profil minimal (/auth/me) et changement du nom d'affichage.

Intégrations:
- `magic_link`: émission / vérification des jetons signés.
- `RecordStore`: création du participant à la première connexion, sessions de connexion.

Garde-fous:
- L'envoi d'email est hors périmètre : le lien est journalisé et, en DEBUG uniquement,
  renvoyé dans la réponse (`preview_url`).
- Email normalisé (minuscules, espaces retirés) : un email = un participant.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from pydantic import BaseModel, Field, field_validator

from app.config.settings import settings
from app.deps.auth import close_login, current_participant, open_login
from app.models.participant import Participant
from app.services.magic_link import build_magic_link, issue_token, normalize_email, verify_token
from app.services.record_store import RecordStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------- Modèles ----------

class MagicLinkIn(BaseModel):
    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = normalize_email(value)
        local, _, domain = value.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return value


class MagicLinkOut(BaseModel):
    ok: bool = True
    preview_url: Optional[str] = None


class ProfileIn(BaseModel):
    name: str = Field(min_length=1, max_length=80)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        # espaces retirés avant le contrôle de longueur
        return value.strip() if isinstance(value, str) else value


class AuthOut(BaseModel):
    participant_id: str
    email: str
    name: Optional[str] = None
    session_id: Optional[str] = None


def _auth_out(participant: Participant) -> AuthOut:
    return AuthOut(
        participant_id=participant.id,
        email=participant.email,
        name=participant.name,
        session_id=participant.session_id,
    )


# ---------- Routes ----------

@router.post("/magic-link", response_model=MagicLinkOut)
def send_magic_link(data: MagicLinkIn):
    """Émet un lien magique pour `email` (livraison email hors périmètre)."""
    link = build_magic_link(issue_token(data.email))
    logger.info("Magic link issued", extra={"email": data.email})
    if settings.DEBUG:
        logger.info("Magic link preview: %s", link)
        return MagicLinkOut(preview_url=link)
    return MagicLinkOut()


@router.get("/verify", response_model=AuthOut)
def verify(
    response: Response,
    token: str = Query(..., description="Jeton reçu par lien magique"),
    store: RecordStore = Depends(get_store),
):
    """
    Vérifie le jeton, crée le participant à la première connexion et pose le cookie.
    - 401 si jeton invalide ou expiré.
    """
    email = verify_token(token)
    if not email:
        raise HTTPException(status_code=401, detail="invalid_or_expired_token")

    with store.lock:
        participant = store.get_participant_by_email(email)
        if participant is None:
            participant = store.create_participant(email)
            store.log_event("participant_created", {"participant_id": participant.id})
            logger.info("Participant created", extra={"participant_id": participant.id})

    open_login(store, response, participant.id)
    return _auth_out(participant)


@router.post("/logout")
def logout(request: Request, response: Response, store: RecordStore = Depends(get_store)):
    """Déconnecte : supprime la session côté serveur et efface le cookie."""
    close_login(store, request, response)
    return {"ok": True}


@router.get("/me", response_model=AuthOut)
def me(participant: Optional[Participant] = Depends(current_participant)):
    """Profil minimal du participant connecté (401 sinon)."""
    if participant is None:
        raise HTTPException(status_code=401, detail="not_logged_in")
    return _auth_out(participant)


@router.put("/me", response_model=AuthOut)
def update_me(
    data: ProfileIn,
    participant: Optional[Participant] = Depends(current_participant),
    store: RecordStore = Depends(get_store),
):
    """Définit le nom d'affichage (sinon l'email masqué apparaît au classement)."""
    if participant is None:
        raise HTTPException(status_code=401, detail="not_logged_in")
    updated = store.update_participant(participant.id, name=data.name)
    return _auth_out(updated)
