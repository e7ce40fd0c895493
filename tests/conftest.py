"""Shared test fixtures for cleanval tests."""

from pathlib import Path
from typing import Callable, List, Optional

import pytest

from cleanval import (
    ConfigLoader,
    Ingredient,
    Machine,
    Product,
    ResolvedConfig,
    SafetyFactorConfig,
    ScoringCriteria,
)


@pytest.fixture
def config_dir() -> Path:
    """Path to production config directory."""
    return Path(__file__).parent.parent / "config"


@pytest.fixture
def loader(config_dir: Path) -> ConfigLoader:
    """ConfigLoader instance."""
    return ConfigLoader(config_dir)


@pytest.fixture
def criteria(loader: ConfigLoader) -> ScoringCriteria:
    """Default scoring tables."""
    return loader.load_scoring()


@pytest.fixture
def safety(loader: ConfigLoader) -> SafetyFactorConfig:
    """Default route safety factors."""
    return loader.load_safety_factors()


@pytest.fixture
def sample_resolved(loader: ConfigLoader) -> ResolvedConfig:
    """Resolved sample_site catalog."""
    return loader.resolve("sample_site")


@pytest.fixture
def temp_db(tmp_path: Path) -> Path:
    """Temporary database file path (does not create the file)."""
    return tmp_path / "test_cleanval.duckdb"


@pytest.fixture
def make_ingredient() -> Callable[..., Ingredient]:
    """Factory for ingredients with sensible defaults."""
    counter = {"id": 0}

    def _make(**overrides) -> Ingredient:
        counter["id"] += 1
        data = {
            "id": counter["id"],
            "name": f"API {counter['id']}",
            "therapeutic_dose": 100.0,
            "mdd": 1000.0,
            "solubility": "Soluble",
            "cleanability": "Medium",
            "pde": 1.0,
            "ld50": None,
        }
        data.update(overrides)
        return Ingredient(**data)

    return _make


@pytest.fixture
def make_product(make_ingredient) -> Callable[..., Product]:
    """Factory for products with one default ingredient."""
    counter = {"id": 0}

    def _make(
        machine_ids: List[int],
        ingredients: Optional[List[Ingredient]] = None,
        **overrides,
    ) -> Product:
        counter["id"] += 1
        data = {
            "id": counter["id"],
            "product_code": f"P{counter['id']:03d}",
            "name": f"Product {counter['id']}",
            "product_type": "Tablets",
            "line": "Solids",
            "batch_size_kg": 100.0,
            "machine_ids": machine_ids,
            "active_ingredients": ingredients or [make_ingredient()],
        }
        data.update(overrides)
        return Product(**data)

    return _make


@pytest.fixture
def make_machines() -> Callable[..., List[Machine]]:
    """Factory for machines with given areas keyed by id."""

    def _make(areas: dict) -> List[Machine]:
        return [
            Machine(id=machine_id, name=f"Machine {machine_id}", area=area, line="Solids")
            for machine_id, area in areas.items()
        ]

    return _make
