"""
Module routes/game_leaderboard.py
Rôle:
- Expose le classement de la session de l'utilisateur connecté.

Notes:
- Participant → sa session ; facilitateur sans session → sa session la plus récente.
- Aucune portée (non connecté, pas de session) → liste vide, pas d'erreur.
"""
from typing import Optional

from fastapi import APIRouter, Depends

from app.deps.auth import current_participant_id
from app.models.leaderboard import LeaderboardView
from app.services.leaderboard import leaderboard_for
from app.services.record_store import RecordStore, get_store

router = APIRouter(prefix="/game", tags=["game"])


@router.get("/leaderboard", response_model=LeaderboardView)
async def leaderboard(
    participant_id: Optional[str] = Depends(current_participant_id),
    store: RecordStore = Depends(get_store),
) -> LeaderboardView:
    """Classement: lignes de bingo, puis points bonus, puis composants complétés (décroissants)."""
    return leaderboard_for(store, participant_id)
