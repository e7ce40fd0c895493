"""YAML configuration loader with name-based catalog resolution."""

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from cleanval.catalog import validate_catalog
from cleanval.maco import DEFAULT_BODY_WEIGHT_KG, VISUAL_LIMIT_MG_PER_CM2
from cleanval.models import DetergentIngredient, Machine, Product, ToxicityVisibility
from cleanval.safety import SafetyFactorConfig
from cleanval.scoring import ScoringCriteria
from cleanval.trains import DEFAULT_ASSUMED_SSA, train_key

DEFAULT_STAGE_ORDER = [
    "Weighing",
    "Mixing",
    "Compression",
    "Coating",
    "Filling",
    "Checking",
    "Labeling",
    "Packing",
    "Other",
]


@dataclass
class DefaultsConfig:
    """Global defaults loaded from config/defaults.yaml."""

    engine: Dict[str, Any] = field(default_factory=dict)
    toxicity: Dict[str, Any] = field(default_factory=dict)
    stage_display_order: List[str] = field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))

    @property
    def assumed_ssa(self) -> float:
        return float(self.engine.get("assumed_ssa_cm2", DEFAULT_ASSUMED_SSA))

    @property
    def body_weight_kg(self) -> float:
        return float(self.engine.get("body_weight_kg", DEFAULT_BODY_WEIGHT_KG))

    @property
    def visual_limit(self) -> float:
        return float(self.engine.get("visual_limit_mg_per_cm2", VISUAL_LIMIT_MG_PER_CM2))

    @property
    def visibility(self) -> ToxicityVisibility:
        return ToxicityVisibility(
            pde_hidden=bool(self.toxicity.get("pde_hidden", False)),
            ld50_hidden=bool(self.toxicity.get("ld50_hidden", False)),
        )


@dataclass
class CatalogConfig:
    """Products, machines and detergent ingredients for one site."""

    name: str
    description: str = ""
    products: List[Product] = field(default_factory=list)
    machines: List[Machine] = field(default_factory=list)
    detergents: List[DetergentIngredient] = field(default_factory=list)
    # Keyed by train key
    safety_factor_overrides: Dict[str, float] = field(default_factory=dict)
    scoring: Optional[ScoringCriteria] = None
    stage_display_order: Optional[List[str]] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class ResolvedConfig:
    """Fully resolved configuration ready for calculation."""

    catalog: CatalogConfig
    criteria: ScoringCriteria
    safety: SafetyFactorConfig
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    visibility: ToxicityVisibility = field(default_factory=ToxicityVisibility)


class ConfigLoader:
    """Loads and resolves YAML configuration files."""

    def __init__(self, config_dir: Path | str = "config"):
        self.config_dir = Path(config_dir)
        self.defaults = self.load_defaults()

    def load_defaults(self) -> DefaultsConfig:
        """Load global defaults from config/defaults.yaml."""
        path = self.config_dir / "defaults.yaml"
        if not path.exists():
            return DefaultsConfig()
        data = self._load_yaml(path)
        return DefaultsConfig(
            engine=data.get("engine", {}),
            toxicity=data.get("toxicity", {}),
            stage_display_order=data.get("stage_display_order", list(DEFAULT_STAGE_ORDER)),
        )

    def load_scoring(self) -> ScoringCriteria:
        """Load scoring tables from config/scoring.yaml."""
        data = self._load_yaml(self.config_dir / "scoring.yaml")
        return ScoringCriteria.model_validate(data)

    def load_safety_factors(self) -> SafetyFactorConfig:
        """Load route safety factors from config/safety_factors.yaml."""
        data = self._load_yaml(self.config_dir / "safety_factors.yaml")
        return SafetyFactorConfig.model_validate(data)

    def load_catalog(self, name: str) -> CatalogConfig:
        """Load a catalog configuration by name."""
        path = self.config_dir / "catalogs" / f"{name}.yaml"
        data = self._load_yaml(path)
        return self.parse_catalog(data, default_name=name)

    def load_catalog_file(self, path: Path | str) -> CatalogConfig:
        """Load a catalog from a YAML file or a JSON data export."""
        path = Path(path)
        if path.suffix.lower() == ".json":
            if not path.exists():
                raise FileNotFoundError(f"Catalog file not found: {path}")
            with open(path) as f:
                data = json.load(f)
        else:
            data = self._load_yaml(path)
        return self.parse_catalog(data, default_name=path.stem)

    def parse_catalog(self, data: Dict[str, Any], default_name: str = "catalog") -> CatalogConfig:
        """Build a CatalogConfig from a mapping.

        Accepts both this project's snake_case layout and the camelCase
        layout of the legacy JSON export (``detergentIngredients``,
        ``scoringCriteria``, ``safetyFactorOverrides``).

        Raises:
            CatalogError: if catalog invariants are violated
        """
        products = [Product.model_validate(p) for p in data.get("products", [])]
        machines = [Machine.model_validate(m) for m in data.get("machines", [])]
        detergent_data = data.get("detergent_ingredients", data.get("detergentIngredients", []))
        detergents = [DetergentIngredient.model_validate(d) for d in detergent_data]

        scoring_data = data.get("scoring_criteria", data.get("scoringCriteria"))
        scoring = ScoringCriteria.model_validate(scoring_data) if scoring_data else None

        override_data = data.get(
            "safety_factor_overrides", data.get("safetyFactorOverrides", [])
        )
        stage_order = data.get("stage_display_order", data.get("stageDisplayOrder"))

        warnings = validate_catalog(products, machines)

        return CatalogConfig(
            name=data.get("name", default_name),
            description=data.get("description", ""),
            products=products,
            machines=machines,
            detergents=detergents,
            safety_factor_overrides=self._parse_overrides(override_data or []),
            scoring=scoring,
            stage_display_order=list(stage_order) if stage_order else None,
            warnings=warnings,
        )

    def resolve(self, catalog_name: str) -> ResolvedConfig:
        """Fully resolve a catalog with scoring, safety factors and defaults."""
        return self.resolve_catalog(self.load_catalog(catalog_name))

    def resolve_catalog(self, catalog: CatalogConfig) -> ResolvedConfig:
        """Combine an already loaded catalog with the config directory."""
        criteria = catalog.scoring or self.load_scoring()
        defaults = self.defaults
        if catalog.stage_display_order:
            defaults = replace(defaults, stage_display_order=list(catalog.stage_display_order))
        return ResolvedConfig(
            catalog=catalog,
            criteria=criteria,
            safety=self.load_safety_factors(),
            defaults=defaults,
            visibility=self.defaults.visibility,
        )

    def _parse_overrides(self, entries: List[Dict[str, Any]]) -> Dict[str, float]:
        """Convert override entries (line, dosage_form, machine_ids) to train keys."""
        overrides: Dict[str, float] = {}
        for entry in entries:
            key = train_key(entry["line"], entry["dosage_form"], entry["machine_ids"])
            overrides[key] = float(entry["safety_factor"])
        return overrides

    def _load_yaml(self, path: Path) -> Dict[str, Any]:
        """Load a YAML file."""
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            return yaml.safe_load(f) or {}


def override_entries(overrides: Dict[str, float]) -> List[Dict[str, Any]]:
    """Inverse of the override parsing: train keys back to catalog entries."""
    entries = []
    for key, value in overrides.items():
        line, dosage_form, machine_ids = json.loads(key)
        entries.append(
            {
                "line": line,
                "dosage_form": dosage_form,
                "machine_ids": machine_ids,
                "safety_factor": value,
            }
        )
    return entries
