"""
Routes de gestion de session (facilitateur + participants).

Objectifs :
- Création de sessions et tableau de bord facilitateur.
- Déblocage des composants et activation du bonus (propriétaire uniquement).
- Rejoindre / quitter une session via son code court.
- Fin de session (les participants la verront introuvable).

Chaque mutation réussie est notifiée aux clients WebSocket de la session.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.deps.auth import current_email, current_participant_id
from app.services import progress
from app.services.rate_limiter import RateLimiter, get_rate_limiter
from app.services.record_store import RecordStore, get_store
from app.services.ws_manager import WS
from app.utils.http_outcome import unwrap

router = APIRouter(prefix="/session", tags=["session"])


# ---------------------------------------------------------------------------
# Modèles Pydantic
# ---------------------------------------------------------------------------
class SessionCreateResponse(BaseModel):
    session_id: str
    code: str


class JoinPayload(BaseModel):
    code: str = Field(..., description="Code de session partagé par le facilitateur")


class UnlockPayload(BaseModel):
    component_id: str


class BonusPayload(BaseModel):
    enabled: bool = True


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("", response_model=SessionCreateResponse)
async def create_session(
    email: Optional[str] = Depends(current_email),
    store: RecordStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> SessionCreateResponse:
    """Crée une session animée par l'utilisateur connecté et renvoie son code."""
    data = unwrap(progress.create_session(store, email, limiter=limiter))
    return SessionCreateResponse(**data)


@router.post("/join")
async def join_session(
    payload: JoinPayload,
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    """Rejoint une session : nouvelle carte, progression remise à zéro."""
    data = unwrap(progress.join_session(store, payload.code, participant_id, limiter=limiter))
    await WS.notify_participant_changed(data["session_id"], participant_id, kind="joined")
    return data


@router.post("/leave")
async def leave_session(
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    data = unwrap(progress.leave_session(store, participant_id))
    await WS.notify_participant_changed(data["session_id"], participant_id, kind="left")
    return data


@router.get("/{session_id}")
async def session_overview(
    session_id: str,
    email: Optional[str] = Depends(current_email),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """Tableau de bord : état de la session et progression des participants."""
    return unwrap(progress.session_overview(store, session_id, email))


@router.post("/{session_id}/unlock")
async def unlock_component(
    session_id: str,
    payload: UnlockPayload,
    email: Optional[str] = Depends(current_email),
    store: RecordStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    """Débloque un composant pour tous les participants de la session."""
    data = unwrap(progress.unlock_component(store, session_id, payload.component_id, email, limiter=limiter))
    if not data["already_unlocked"]:
        await WS.notify_session_changed(session_id, kind="component_unlocked", component_id=data["component_id"])
    return data


@router.post("/{session_id}/bonus")
async def toggle_bonus(
    session_id: str,
    payload: BonusPayload,
    email: Optional[str] = Depends(current_email),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    data = unwrap(progress.set_bonus_enabled(store, session_id, payload.enabled, email))
    await WS.notify_session_changed(session_id, kind="bonus_toggled", enabled=data["bonus_enabled"])
    return data


@router.delete("/{session_id}")
async def terminate_session(
    session_id: str,
    email: Optional[str] = Depends(current_email),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    """Termine la session (suppression définitive)."""
    data = unwrap(progress.terminate_session(store, session_id, email))
    await WS.notify_session_terminated(session_id)
    return data
