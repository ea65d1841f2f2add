"""
Models / leaderboard.py
Rôle:
- Entrées de classement (éphémères, recalculées à chaque requête).
"""
from typing import List, Optional

from pydantic import BaseModel, Field


class LeaderboardEntry(BaseModel):
    rank: int  # 1-based, purement positionnel (pas de rang partagé)
    name: str  # nom affiché, email masqué si besoin
    score: int  # nombre de composants core complétés
    bingo_lines: int
    bonus_points: int
    is_completed: bool


class LeaderboardView(BaseModel):
    entries: List[LeaderboardEntry] = Field(default_factory=list)
    session_code: Optional[str] = None
