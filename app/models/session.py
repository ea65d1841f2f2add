"""
Models / session.py
Rôle:
- Définir une session animée par un facilitateur (atelier).

Champs:
- code: code court (6 caractères) partagé aux participants.
- facilitator_email: propriétaire de la session (seul habilité à débloquer).
- unlocked_core / unlocked_bonus: ensembles débloqués (ne font que croître).
- bonus_enabled: active la grille bonus pour toute la session.
"""
import time
from typing import Set

from pydantic import BaseModel, Field


class Session(BaseModel):
    """Session de jeu partagée par ses participants."""
    id: str
    code: str
    facilitator_email: str
    unlocked_core: Set[str] = Field(default_factory=set)
    unlocked_bonus: Set[str] = Field(default_factory=set)
    bonus_enabled: bool = False
    created_at: float = Field(default_factory=time.time)

    def is_owned_by(self, email: str | None) -> bool:
        return bool(email) and self.facilitator_email.strip().lower() == email.strip().lower()
