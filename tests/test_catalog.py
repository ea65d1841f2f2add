import orjson
import pytest

from app.models.component import BonusComponent, CoreComponent
from app.services.catalog import CATALOG, CatalogError, ComponentCatalog


def test_catalog_has_twenty_core_components_five_per_period():
    assert len(CATALOG.core()) == 20
    grouped = CATALOG.by_period()
    assert {period: len(items) for period, items in grouped.items()} == {
        "Basics": 5,
        "Combos": 5,
        "Production": 5,
        "Future": 5,
    }


def test_catalog_tiers_are_tagged():
    assert isinstance(CATALOG.get("prompting"), CoreComponent)
    bonus = CATALOG.get("thinking-models")
    assert isinstance(bonus, BonusComponent)
    assert bonus.bonus_points == 50
    assert CATALOG.get("unknown") is None
    assert all(c.bonus_points > 0 for c in CATALOG.bonus())


def _write_catalog(path, components):
    path.write_bytes(orjson.dumps({"components": components}))
    return path


def _core(i):
    return {"id": f"c{i}", "name": f"C{i}", "period": "Basics", "family": "Actions", "tier": "core"}


def test_catalog_rejects_wrong_core_count(tmp_path):
    path = _write_catalog(tmp_path / "components.json", [_core(i) for i in range(19)])
    with pytest.raises(CatalogError):
        ComponentCatalog(path)


def test_catalog_rejects_duplicate_ids(tmp_path):
    items = [_core(i) for i in range(20)] + [_core(3)]
    path = _write_catalog(tmp_path / "components.json", items)
    with pytest.raises(CatalogError):
        ComponentCatalog(path)


def test_catalog_rejects_unknown_tier(tmp_path):
    items = [_core(i) for i in range(20)]
    items[0]["tier"] = "legendary"
    path = _write_catalog(tmp_path / "components.json", items)
    with pytest.raises(CatalogError):
        ComponentCatalog(path)


def test_missing_catalog_file(tmp_path):
    with pytest.raises(CatalogError):
        ComponentCatalog(tmp_path / "absent.json")
