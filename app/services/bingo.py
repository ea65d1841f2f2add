"""
Service: bingo.py
Rôle:
- Générer la carte personnelle d'un participant (permutation des 20 composants core).
- Compter les lignes de bingo complétées sur la grille 5 colonnes x 4 lignes.
- Générer / normaliser les codes de session (6 caractères lisibles).

Grille (row-major, index = row * 5 + col):

    0  1  2  3  4
    5  6  7  8  9
   10 11 12 13 14
   15 16 17 18 19

Lignes comptées : 4 rangées, 5 colonnes, et deux diagonales sur 4 colonnes seulement
((0,0)→(3,3) et (0,4)→(3,1)). La grille n'est pas carrée, la colonne restante est
volontairement ignorée par chaque diagonale.

Toutes les fonctions sont pures (pas d'I/O, pas d'état partagé).
"""
from __future__ import annotations

import random
from typing import AbstractSet, List, Optional, Sequence, Tuple

from app.services.catalog import CATALOG

GRID_COLS = 5
GRID_ROWS = 4
GRID_SIZE = GRID_COLS * GRID_ROWS

# Alphabet sans caractères ambigus (pas de I, O, 0, 1)
SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_CODE_LENGTH = 6

_SYSTEM_RANDOM = random.SystemRandom()

Cell = Tuple[int, int]


def _grid_lines() -> List[Tuple[Cell, ...]]:
    """Toutes les lignes gagnantes, en coordonnées (row, col)."""
    lines: List[Tuple[Cell, ...]] = []
    for row in range(GRID_ROWS):
        lines.append(tuple((row, col) for col in range(GRID_COLS)))
    for col in range(GRID_COLS):
        lines.append(tuple((row, col) for row in range(GRID_ROWS)))
    # Diagonales limitées à GRID_ROWS colonnes
    lines.append(tuple((i, i) for i in range(GRID_ROWS)))
    lines.append(tuple((i, GRID_COLS - 1 - i) for i in range(GRID_ROWS)))
    return lines


BINGO_LINES: Tuple[Tuple[Cell, ...], ...] = tuple(_grid_lines())


def generate_card_layout(
    component_ids: Optional[Sequence[str]] = None,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Retourne une permutation uniforme des ids core (Fisher-Yates, du dernier au premier).
    - `component_ids`: ids à mélanger (défaut: ids core du catalogue).
    - `rng`: source aléatoire injectable (défaut: SystemRandom).
    """
    if component_ids is None:
        component_ids = CATALOG.core_ids()
    rng = rng or _SYSTEM_RANDOM
    shuffled = list(component_ids)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


def _is_filled(layout: Sequence[str], completed: AbstractSet[str], row: int, col: int) -> bool:
    index = row * GRID_COLS + col
    # Carte incomplète (données partiellement initialisées) : case absente = non cochée
    if index >= len(layout):
        return False
    return layout[index] in completed


def count_completed_lines(layout: Sequence[str], completed: AbstractSet[str] | Sequence[str]) -> int:
    """
    Compte les lignes (rangées, colonnes, 2 diagonales) entièrement complétées.
    Les ids complétés absents de la carte sont ignorés.
    """
    completed_set = completed if isinstance(completed, (set, frozenset)) else set(completed)
    return sum(
        1
        for line in BINGO_LINES
        if all(_is_filled(layout, completed_set, row, col) for row, col in line)
    )


def generate_session_code(rng: Optional[random.Random] = None) -> str:
    """Code de 6 caractères tirés uniformément. L'unicité est garantie par le store."""
    rng = rng or _SYSTEM_RANDOM
    return "".join(rng.choice(SESSION_CODE_ALPHABET) for _ in range(SESSION_CODE_LENGTH))


def normalize_session_code(code: str | None) -> str:
    return (code or "").strip().upper()


def is_valid_session_code(code: str | None) -> bool:
    normalized = normalize_session_code(code)
    return len(normalized) == SESSION_CODE_LENGTH and all(
        ch in SESSION_CODE_ALPHABET for ch in normalized
    )
