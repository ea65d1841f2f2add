"""
Service: catalog.py
Rôle:
- Charger en mémoire le référentiel des composants (catalogue statique).
- Exposer `CATALOG.get(id)`, `CATALOG.all()`, `CATALOG.core()`, `CATALOG.bonus()`.

Fichier source:
- app/data/components.json → {"components":[{id,name,period,family,tier,description,...}]}

Remarque:
- Le catalogue est validé au chargement : ids uniques, exactement 20 composants core
  (la grille fait 5x4). Une donnée invalide lève `CatalogError` au démarrage.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from app.config.settings import settings
from app.models.component import PERIODS, BonusComponent, CoreComponent, GameComponent
from .io_utils import read_json

logger = logging.getLogger(__name__)

CATALOG_PATH = Path(settings.DATA_DIR) / "components.json"
CORE_COMPONENT_COUNT = 20

_COMPONENTS_ADAPTER = TypeAdapter(List[GameComponent])


class CatalogError(ValueError):
    """Catalogue de composants absent ou incohérent."""


class ComponentCatalog:
    """Catalogue statique des composants (référentiel).

    Source: app/data/components.json
    Exemple d'entrée:
    {
      "id": "thinking-models",
      "name": "Thinking Models",
      "period": "Future",             # Basics | Combos | Production | Future
      "family": "Brains",
      "tier": "bonus",                # "core" | "bonus"
      "bonus_points": 50
    }
    """

    def __init__(self, path: Path = CATALOG_PATH):
        self.path = path
        self.components: Dict[str, GameComponent] = {}
        self.load()

    def load(self) -> None:
        """Charge le JSON, valide et indexe les composants par id (ordre du fichier conservé)."""
        raw = read_json(self.path)
        if not isinstance(raw, dict):
            raise CatalogError(f"Catalogue introuvable ou illisible: {self.path}")
        try:
            items = _COMPONENTS_ADAPTER.validate_python(raw.get("components", []))
        except ValidationError as exc:
            raise CatalogError(f"Catalogue invalide: {exc}") from exc

        components: Dict[str, GameComponent] = {}
        for item in items:
            if item.id in components:
                raise CatalogError(f"Identifiant dupliqué dans le catalogue: {item.id}")
            components[item.id] = item

        core_count = sum(1 for c in components.values() if isinstance(c, CoreComponent))
        if core_count != CORE_COMPONENT_COUNT:
            raise CatalogError(
                f"Le catalogue doit contenir {CORE_COMPONENT_COUNT} composants core (trouvé: {core_count})"
            )
        self.components = components
        logger.debug("Catalogue chargé", extra={"catalog_size": len(components)})

    def get(self, component_id: str) -> Optional[GameComponent]:
        """Retourne la fiche composant ou None si id inconnu."""
        return self.components.get(component_id)

    def all(self) -> List[GameComponent]:
        return list(self.components.values())

    def core(self) -> List[CoreComponent]:
        return [c for c in self.components.values() if isinstance(c, CoreComponent)]

    def bonus(self) -> List[BonusComponent]:
        return [c for c in self.components.values() if isinstance(c, BonusComponent)]

    def core_ids(self) -> List[str]:
        """Ids core dans l'ordre pédagogique (5 par période)."""
        return [c.id for c in self.core()]

    def by_period(self) -> Dict[str, List[CoreComponent]]:
        """Regroupe les composants core par période (vue tableau de bord facilitateur)."""
        grouped: Dict[str, List[CoreComponent]] = {period: [] for period in PERIODS}
        for component in self.core():
            grouped[component.period].append(component)
        return grouped


CATALOG = ComponentCatalog()
