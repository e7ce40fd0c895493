"""Calculation engine: catalog snapshot in, derived trains and limits out."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from cleanval.coverage import CoverageReport, select_studies_by_group
from cleanval.loader import DEFAULT_STAGE_ORDER, ConfigLoader, ResolvedConfig
from cleanval.maco import (
    DEFAULT_BODY_WEIGHT_KG,
    VISUAL_LIMIT_MG_PER_CM2,
    DetergentMacoResult,
    MacoResult,
    calculate_detergent_maco,
    calculate_maco,
)
from cleanval.models import DetergentIngredient, Machine, Product, ToxicityVisibility
from cleanval.safety import SafetyFactorConfig, SafetyFactorSelection
from cleanval.scoring import ScoringCriteria
from cleanval.trains import DEFAULT_ASSUMED_SSA, Train, build_trains, line_largest_essa

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    """Immutable input to :func:`compute`."""

    products: List[Product]
    machines: List[Machine]
    criteria: ScoringCriteria
    safety: SafetyFactorConfig
    detergents: List[DetergentIngredient] = field(default_factory=list)
    visibility: ToxicityVisibility = field(default_factory=ToxicityVisibility)
    # Keyed by train key so overrides survive renumbering
    safety_factor_overrides: Dict[str, float] = field(default_factory=dict)
    assumed_ssa: float = DEFAULT_ASSUMED_SSA
    body_weight_kg: float = DEFAULT_BODY_WEIGHT_KG
    visual_limit: float = VISUAL_LIMIT_MG_PER_CM2
    stage_display_order: List[str] = field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))
    # Import-time findings such as unknown machine references
    catalog_warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_resolved(cls, resolved: ResolvedConfig) -> "Snapshot":
        catalog = resolved.catalog
        return cls(
            products=list(catalog.products),
            machines=list(catalog.machines),
            criteria=resolved.criteria,
            safety=resolved.safety,
            detergents=list(catalog.detergents),
            visibility=resolved.visibility,
            safety_factor_overrides=dict(catalog.safety_factor_overrides),
            assumed_ssa=resolved.defaults.assumed_ssa,
            body_weight_kg=resolved.defaults.body_weight_kg,
            visual_limit=resolved.defaults.visual_limit,
            stage_display_order=list(resolved.defaults.stage_display_order),
            catalog_warnings=list(catalog.warnings),
        )


@dataclass
class DerivedView:
    """Everything computed from one snapshot."""

    trains: List[Train]
    maco: Dict[str, MacoResult] = field(default_factory=dict)
    safety_factors: Dict[str, SafetyFactorSelection] = field(default_factory=dict)
    detergent_maco: Dict[str, DetergentMacoResult] = field(default_factory=dict)
    coverage: CoverageReport = field(default_factory=CoverageReport)
    machines: List[Machine] = field(default_factory=list)
    stage_display_order: List[str] = field(default_factory=lambda: list(DEFAULT_STAGE_ORDER))
    catalog_warnings: List[str] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        """Catalog warnings, then train and limit warnings prefixed with the train number."""
        messages = [f"Catalog: {w}" for w in self.catalog_warnings]
        for train in self.trains:
            label = f"Train {train.number}"
            messages.extend(f"{label}: {w}" for w in train.warnings)
            if train.key in self.maco:
                messages.extend(f"{label}: {w}" for w in self.maco[train.key].warnings)
            if train.key in self.detergent_maco:
                messages.extend(
                    f"{label} detergent: {w}" for w in self.detergent_maco[train.key].warnings
                )
        return messages

    def train_by_number(self, number: int) -> Optional[Train]:
        for train in self.trains:
            if train.number == number:
                return train
        return None


def compute(snapshot: Snapshot) -> DerivedView:
    """Build trains, MACO limits and study coverage for a snapshot.

    Pure function of its input: no module state is read or written, so
    concurrent callers need no locking.
    """
    trains = build_trains(
        snapshot.products,
        snapshot.machines,
        snapshot.criteria,
        visibility=snapshot.visibility,
        assumed_ssa=snapshot.assumed_ssa,
    )
    view = DerivedView(
        trains=trains,
        machines=list(snapshot.machines),
        stage_display_order=list(snapshot.stage_display_order),
        catalog_warnings=list(snapshot.catalog_warnings),
    )
    global_largest_essa = max((t.essa for t in trains), default=0.0)

    for train in trains:
        selection = snapshot.safety.select(
            [p.dosage_form for p in train.products],
            override=snapshot.safety_factor_overrides.get(train.key),
        )
        view.safety_factors[train.key] = selection
        view.maco[train.key] = calculate_maco(
            train,
            line_largest_essa(train, trains),
            selection.value,
            visibility=snapshot.visibility,
            visual_limit=snapshot.visual_limit,
        )
        view.detergent_maco[train.key] = calculate_detergent_maco(
            train,
            snapshot.detergents,
            global_largest_essa,
            selection.value,
            body_weight_kg=snapshot.body_weight_kg,
        )

    view.coverage = select_studies_by_group(trains)
    logger.info(
        "Computed %d trains, %d studies required", len(trains), view.coverage.total
    )
    return view


class ValidationEngine:
    """Engine that runs calculations from resolved YAML configuration."""

    def __init__(
        self,
        config_dir: str = "config",
        save_to_db: bool = False,
        db_path: Optional[Path | str] = None,
    ):
        """Initialize the engine.

        Args:
            config_dir: Path to configuration directory
            save_to_db: If True, archive results to DuckDB (default: False)
            db_path: Custom path for DuckDB file (default: ./cleanval.duckdb)
        """
        self.loader = ConfigLoader(config_dir)
        self.save_to_db = save_to_db
        self.db_path = Path(db_path) if db_path else None

    def run(self, catalog_name: str) -> DerivedView:
        """Compute results for a catalog config by name."""
        resolved = self.loader.resolve(catalog_name)
        return self.run_resolved(resolved)

    def run_resolved(self, resolved: ResolvedConfig) -> DerivedView:
        """Compute results from a fully resolved configuration."""
        view = compute(Snapshot.from_resolved(resolved))
        if self.save_to_db:
            from cleanval.storage import save_results

            run_id = save_results(resolved.catalog.name, view, db_path=self.db_path)
            logger.info("Stored results as run %d", run_id)
        return view
