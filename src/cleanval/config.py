"""Configuration schemas - re-exports from loader for convenience."""

# Re-export config types from loader
from cleanval.loader import (
    CatalogConfig,
    ConfigLoader,
    DefaultsConfig,
    ResolvedConfig,
)
from cleanval.safety import RouteSafetyFactor, SafetyFactorConfig
from cleanval.scoring import ScoringCategory, ScoringCriteria, ScoringRule

__all__ = [
    "ConfigLoader",
    "DefaultsConfig",
    "CatalogConfig",
    "ResolvedConfig",
    "ScoringCriteria",
    "ScoringCategory",
    "ScoringRule",
    "SafetyFactorConfig",
    "RouteSafetyFactor",
]
