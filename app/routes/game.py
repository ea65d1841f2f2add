"""
Module routes/game.py
Rôle:
- Catalogue des composants (grille core groupée par période + défis bonus).
- État de jeu du participant connecté (carte, progression, statuts).
- Marquer un composant comme complété.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.deps.auth import current_participant_id
from app.services import progress
from app.services.catalog import CATALOG
from app.services.rate_limiter import RateLimiter, get_rate_limiter
from app.services.record_store import RecordStore, get_store
from app.services.ws_manager import WS
from app.utils.http_outcome import unwrap

router = APIRouter(prefix="/game", tags=["game"])


class CompletePayload(BaseModel):
    component_id: str


@router.get("/catalog")
async def catalog():
    """Référentiel statique : composants core par période et défis bonus."""
    return {
        "core_by_period": {
            period: [c.model_dump() for c in components]
            for period, components in CATALOG.by_period().items()
        },
        "bonus": [c.model_dump() for c in CATALOG.bonus()],
    }


@router.get("/state")
async def state(
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
) -> Dict[str, Any]:
    return unwrap(progress.game_state(store, participant_id))


@router.post("/complete")
async def complete(
    payload: CompletePayload,
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> Dict[str, Any]:
    """
    Marque un composant comme complété.
    - core: lignes de bingo recalculées (409 si non débloqué).
    - bonus: points ajoutés (409 si bonus inactif ou < 10 core complétés).
    """
    data = unwrap(progress.complete_component(store, participant_id, payload.component_id, limiter=limiter))
    if not data["already_completed"]:
        participant = store.get_participant(participant_id)
        if participant and participant.session_id:
            await WS.notify_participant_changed(
                participant.session_id, participant_id, kind="component_completed"
            )
    return data
