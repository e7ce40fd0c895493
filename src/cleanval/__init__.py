"""Cleaning validation engine for shared pharmaceutical equipment."""

from importlib.metadata import version

from cleanval.catalog import CatalogError, remove_ingredient, validate_catalog
from cleanval.cli import (
    export_state,
    history,
    import_catalog,
    redo,
    report,
    set_visibility,
    undo,
)
from cleanval.config import (
    CatalogConfig,
    ConfigLoader,
    DefaultsConfig,
    ResolvedConfig,
    RouteSafetyFactor,
    SafetyFactorConfig,
    ScoringCategory,
    ScoringCriteria,
    ScoringRule,
)
from cleanval.coverage import (
    CoverageReport,
    Study,
    StudySelection,
    select_required_studies,
    select_studies_by_group,
)
from cleanval.engine import DerivedView, Snapshot, ValidationEngine, compute
from cleanval.maco import (
    MACO_SENTINEL_MG,
    DetergentMacoResult,
    MacoCandidate,
    MacoMethod,
    MacoResult,
    calculate_detergent_maco,
    calculate_maco,
)
from cleanval.models import (
    DetergentIngredient,
    Ingredient,
    Machine,
    Product,
    ToxicityVisibility,
)
from cleanval.safety import SafetyFactorSelection
from cleanval.scoring import IngredientScores, calculate_scores
from cleanval.trains import (
    Train,
    WorstProductRpn,
    build_trains,
    line_largest_essa,
    order_trains,
    train_key,
)

__version__ = version("cleanval")

__all__ = [
    # Models
    "Product",
    "Ingredient",
    "Machine",
    "DetergentIngredient",
    "ToxicityVisibility",
    # Config
    "ConfigLoader",
    "DefaultsConfig",
    "CatalogConfig",
    "ResolvedConfig",
    "ScoringCriteria",
    "ScoringCategory",
    "ScoringRule",
    "SafetyFactorConfig",
    "RouteSafetyFactor",
    "SafetyFactorSelection",
    # Catalog rules
    "CatalogError",
    "validate_catalog",
    "remove_ingredient",
    # Scoring
    "IngredientScores",
    "calculate_scores",
    # Trains
    "Train",
    "WorstProductRpn",
    "build_trains",
    "order_trains",
    "line_largest_essa",
    "train_key",
    # MACO
    "MACO_SENTINEL_MG",
    "MacoMethod",
    "MacoCandidate",
    "MacoResult",
    "DetergentMacoResult",
    "calculate_maco",
    "calculate_detergent_maco",
    # Coverage
    "Study",
    "StudySelection",
    "CoverageReport",
    "select_required_studies",
    "select_studies_by_group",
    # Engine
    "Snapshot",
    "DerivedView",
    "compute",
    "ValidationEngine",
    # CLI
    "report",
    "import_catalog",
    "export_state",
    "undo",
    "redo",
    "history",
    "set_visibility",
]
