"""
Models / component.py
Rôle:
- Décrire une fiche du catalogue (composant pédagogique) côté modèles Pydantic.
- Deux variantes discriminées par `tier` : `CoreComponent` (case de la grille)
  et `BonusComponent` (défi optionnel qui rapporte `bonus_points`).

Notes:
- Les fiches sont immuables (`frozen=True`) : le catalogue est chargé une seule fois.
- `GameComponent` est l'union taguée utilisée par le chargeur et les routes.
"""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Périodes de maturité, dans l'ordre pédagogique
Period = Literal["Basics", "Combos", "Production", "Future"]
PERIODS: tuple = ("Basics", "Combos", "Production", "Future")

# Familles thématiques
Family = Literal["Actions", "Memory", "Blueprint", "Safety", "Brains"]

Tier = Literal["core", "bonus"]


class _ComponentBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # identifiant unique (slug)
    name: str  # nom affiché
    period: Period
    family: Family
    description: str = ""
    doc_url: Optional[str] = None  # lien vers la documentation de référence


class CoreComponent(_ComponentBase):
    """Composant obligatoire : occupe une case de la carte 5x4."""
    tier: Literal["core"] = "core"


class BonusComponent(_ComponentBase):
    """Défi bonus : hors grille, rapporte des points une fois complété."""
    tier: Literal["bonus"] = "bonus"
    bonus_points: int = Field(default=50, ge=0)


GameComponent = Annotated[Union[CoreComponent, BonusComponent], Field(discriminator="tier")]
