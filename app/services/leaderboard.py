"""
Service: leaderboard.py
Rôle:
- Classer les participants d'une session (lignes de bingo, puis points bonus, puis
  nombre de composants core complétés, tous décroissants).
- Masquer les emails utilisés comme nom d'affichage.

Notes:
- Tri stable : à égalité sur les trois clés, l'ordre d'entrée (inscription) est conservé.
- Rang purement positionnel (1, 2, 3… pas de rang partagé).
- Portée : la session du participant, sinon (facilitateur) sa session la plus récente.
"""
import logging
from typing import Iterable, List, Optional, Tuple

from app.models.leaderboard import LeaderboardEntry, LeaderboardView
from app.models.participant import Participant
from app.models.session import Session
from .record_store import RecordStore

logger = logging.getLogger(__name__)


def mask_display_name(name: str) -> str:
    """
    'alice@example.com' → 'al***@example.com', 'a@example.com' → '***@example.com'.
    Un nom sans '@' est renvoyé tel quel.
    """
    if "@" not in name:
        return name
    local, _, domain = name.partition("@")
    if len(local) >= 2:
        return f"{local[:2]}***@{domain}"
    return f"***@{domain}"


def compute_leaderboard(participants: Iterable[Participant]) -> List[LeaderboardEntry]:
    ranked = sorted(
        participants,
        key=lambda p: (-p.bingo_lines, -p.bonus_points, -p.core_score),
    )
    return [
        LeaderboardEntry(
            rank=index,
            name=mask_display_name(p.display_name),
            score=p.core_score,
            bingo_lines=p.bingo_lines,
            bonus_points=p.bonus_points,
            is_completed=p.is_completed,
        )
        for index, p in enumerate(ranked, start=1)
    ]


def resolve_scope(store: RecordStore, participant_id: Optional[str]) -> Tuple[Optional[Session], List[Participant]]:
    """(session, participants) visibles par l'utilisateur, ou (None, []) sans portée."""
    viewer = store.get_participant(participant_id)
    if viewer is None:
        return None, []
    session: Optional[Session] = None
    if viewer.session_id:
        session = store.get_session(viewer.session_id)
    else:
        session = store.find_facilitator_session(viewer.email)
    if session is None:
        return None, []
    return session, store.list_participants_in_session(session.id)


def leaderboard_for(store: RecordStore, participant_id: Optional[str]) -> LeaderboardView:
    session, participants = resolve_scope(store, participant_id)
    if session is None:
        logger.debug("Leaderboard without scope", extra={"participant_id": participant_id})
        return LeaderboardView()
    return LeaderboardView(entries=compute_leaderboard(participants), session_code=session.code)
