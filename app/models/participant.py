"""
Models / participant.py
Rôle:
- Définir la structure d'un participant (utilisateur authentifié) et de sa progression.

Champs:
- id / email / name: identité (name optionnel, l'email sert d'affichage sinon).
- card_layout: permutation des 20 composants core (ordre = cases de la grille, row-major).
- completed_core / completed_bonus: ensembles d'ids complétés (sémantique d'ensemble).
- bingo_lines / bonus_points / is_completed: compteurs dérivés, persistés.
- session_id: session rejointe (peut pointer vers une session terminée).
"""
import time
from typing import List, Optional, Set

from pydantic import BaseModel, Field


class Participant(BaseModel):
    """Participant et sa carte de bingo personnelle."""
    id: str
    email: str
    name: Optional[str] = None
    card_layout: List[str] = Field(default_factory=list)
    completed_core: Set[str] = Field(default_factory=set)
    completed_bonus: Set[str] = Field(default_factory=set)
    bingo_lines: int = 0
    bonus_points: int = 0
    is_completed: bool = False
    session_id: Optional[str] = None
    created_at: float = Field(default_factory=time.time)

    @property
    def display_name(self) -> str:
        """Nom affiché : le nom saisi, sinon l'email brut (masqué au classement)."""
        return self.name or self.email

    @property
    def core_score(self) -> int:
        return len(self.completed_core)
