"""
Dépendances d'authentification participant
==========================================

Objectif
--------
Résoudre l'identité du participant courant à partir d'un **cookie de session HttpOnly**
posé après vérification d'un lien magique (`/auth/verify`).

Intégrations
------------
- `RecordStore` : sessions de connexion persistées (`logins.json`) avec expiration.
- Cookie : `settings.LOGIN_COOKIE_NAME` (HttpOnly, SameSite=Lax, Secure en prod).

API exposée ici
---------------
- `current_participant_id` : dependency → participant_id ou None (jamais d'exception ;
  les services renvoient `Unauthenticated` si None).
- `current_participant` : dependency → `Participant` ou None.
- `open_login()` / `close_login()` : helpers utilisés par `/auth/verify` et `/auth/logout`.

Notes
-----
- Le cookie est vérifié **avant expiration**. Si expiré → supprimé côté serveur.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Request, Response

from app.config.settings import settings
from app.models.participant import Participant
from app.services.record_store import RecordStore, get_store


def open_login(store: RecordStore, response: Response, participant_id: str) -> str:
    """Crée une session de connexion et pose le cookie HttpOnly."""
    login_id = store.create_login(participant_id, settings.LOGIN_TTL_SECONDS)
    response.set_cookie(
        key=settings.LOGIN_COOKIE_NAME,
        value=login_id,
        httponly=True,
        samesite="lax",
        secure=not settings.DEBUG,
        max_age=settings.LOGIN_TTL_SECONDS,
        path="/",
    )
    return login_id


def close_login(store: RecordStore, request: Request, response: Response) -> None:
    """Supprime la session de connexion côté serveur et efface le cookie client."""
    store.delete_login(request.cookies.get(settings.LOGIN_COOKIE_NAME))
    response.delete_cookie(settings.LOGIN_COOKIE_NAME, path="/")


def current_participant_id(
    request: Request,
    store: RecordStore = Depends(get_store),
) -> Optional[str]:
    return store.resolve_login(request.cookies.get(settings.LOGIN_COOKIE_NAME))


def current_participant(
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
) -> Optional[Participant]:
    if not participant_id:
        return None
    return store.get_participant(participant_id)


def current_email(participant: Optional[Participant] = Depends(current_participant)) -> Optional[str]:
    """Email de l'utilisateur connecté (identité facilitateur)."""
    return participant.email if participant else None
