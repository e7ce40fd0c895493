"""Risk Priority Number (RPN) scoring for active ingredients.

Scores come from user-editable tables (``config/scoring.yaml``). Each
category is one of four rule types:

- ``exactMatch``: case-sensitive text equality (solubility, cleanability)
- ``range``: numeric bound comparison (therapeutic dose, PDE, LD50)
- ``rpn_threshold``: RPN to rating label, bands are ``[min, max)``
- ``rpn_samples``: RPN to number of swab samples, bands are inclusive

Rules are evaluated in configured order and the first match wins.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cleanval.models import Ingredient, ToxicityVisibility, positive_number

logger = logging.getLogger(__name__)

RATING_NOT_AVAILABLE = "N/A"


class RuleType(str, Enum):
    """Scoring category rule types."""

    EXACT_MATCH = "exactMatch"
    RANGE = "range"
    RPN_THRESHOLD = "rpn_threshold"
    RPN_SAMPLES = "rpn_samples"


class Comparison(str, Enum):
    """Bound comparisons available to ``range`` rules."""

    GREATER_EXCLUSIVE = "greater_exclusive"
    GREATER_INCLUSIVE = "greater_inclusive"
    LESS_EXCLUSIVE = "less_exclusive"
    LESS_INCLUSIVE = "less_inclusive"
    BETWEEN_INCLUSIVE_BOTH = "between_inclusive_both"
    BETWEEN_EXCLUSIVE_LOWER_INCLUSIVE_UPPER = "between_exclusive_lower_inclusive_upper"
    BETWEEN_INCLUSIVE_LOWER_EXCLUSIVE_UPPER = "between_inclusive_lower_exclusive_upper"


class ScoringRule(BaseModel):
    """A single row of a scoring table.

    Which fields matter depends on the owning category's rule type.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: Optional[str] = None
    score: Optional[int] = None
    # range
    comparison: Optional[Comparison] = None
    lower_bound: Optional[float] = None
    upper_bound: Optional[float] = None
    # rpn_threshold
    rating: Optional[str] = None
    range_description: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None  # None means open-ended
    # rpn_samples
    samples: Optional[int] = None
    rpn_min: Optional[float] = None
    rpn_max: Optional[float] = None

    def matches_value(self, value: float) -> bool:
        """Check a numeric value against this rule's bound comparison."""
        lo, hi = self.lower_bound, self.upper_bound
        cmp = self.comparison
        if cmp is Comparison.GREATER_EXCLUSIVE:
            return lo is not None and value > lo
        if cmp is Comparison.GREATER_INCLUSIVE:
            return lo is not None and value >= lo
        if cmp is Comparison.LESS_EXCLUSIVE:
            return hi is not None and value < hi
        if cmp is Comparison.LESS_INCLUSIVE:
            return hi is not None and value <= hi
        if lo is None or hi is None:
            return False
        if cmp is Comparison.BETWEEN_INCLUSIVE_BOTH:
            return lo <= value <= hi
        if cmp is Comparison.BETWEEN_EXCLUSIVE_LOWER_INCLUSIVE_UPPER:
            return lo < value <= hi
        if cmp is Comparison.BETWEEN_INCLUSIVE_LOWER_EXCLUSIVE_UPPER:
            return lo <= value < hi
        return False

    def contains_rpn(self, rpn: float) -> bool:
        """Half-open ``[min, max)`` band test used for RPN ratings."""
        if self.min is not None and rpn < self.min:
            return False
        if self.max is not None and rpn >= self.max:
            return False
        return True


class ScoringCategory(BaseModel):
    """An ordered scoring table for one attribute."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = ""
    type: RuleType
    default_score: Optional[int] = None
    criteria: List[ScoringRule] = Field(default_factory=list)

    def score_text(self, value: Optional[str]) -> int:
        for rule in self.criteria:
            if rule.text is not None and rule.text == value:
                return rule.score if rule.score is not None else self._default()
        return self._default()

    def score_value(self, value: float) -> int:
        for rule in self.criteria:
            if rule.matches_value(value):
                return rule.score if rule.score is not None else self._default()
        return self._default()

    def rating_for(self, rpn: float) -> str:
        for rule in self.criteria:
            if rule.contains_rpn(rpn):
                return rule.rating or RATING_NOT_AVAILABLE
        return RATING_NOT_AVAILABLE

    def samples_for(self, rpn: float) -> int:
        for rule in self.criteria:
            lo = rule.rpn_min if rule.rpn_min is not None else float("-inf")
            hi = rule.rpn_max if rule.rpn_max is not None else float("inf")
            if lo <= rpn <= hi and rule.samples is not None:
                return rule.samples
        return self._default()

    def _default(self) -> int:
        return self.default_score if self.default_score is not None else 0


class ScoringCriteria(BaseModel):
    """Complete set of scoring tables.

    Unknown categories (e.g. sample-location ratings) are kept so that
    stored criteria survive a load/save cycle unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    solubility: ScoringCategory
    therapeutic_dose: ScoringCategory
    cleanability: ScoringCategory
    toxicity_pde: ScoringCategory
    toxicity_ld50: ScoringCategory
    rpn_rating: ScoringCategory
    number_of_samples: Optional[ScoringCategory] = None

    def rating_for(self, rpn: float) -> str:
        """Map an RPN to its rating label ("N/A" when no band matches)."""
        return self.rpn_rating.rating_for(rpn)

    def samples_for(self, rpn: float) -> Optional[int]:
        """Number of swab samples for an RPN, if a samples table is configured."""
        if self.number_of_samples is None:
            return None
        return self.number_of_samples.samples_for(rpn)


@dataclass(frozen=True)
class IngredientScores:
    """Component scores and RPN for one ingredient.

    ``error`` is set when the ingredient could not be scored; in that case
    ``rpn`` is 0 and callers rank the ingredient lowest.
    """

    solubility_score: int = 0
    therapeutic_dose_score: int = 0
    cleanability_score: int = 0
    pde_score: Optional[int] = None
    ld50_score: Optional[int] = None
    toxicity_source: Optional[str] = None  # "pde", "ld50" or None
    rpn: int = 0
    rpn_rating: str = RATING_NOT_AVAILABLE
    error: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def toxicity_score(self) -> Optional[int]:
        if self.toxicity_source == "pde":
            return self.pde_score
        if self.toxicity_source == "ld50":
            return self.ld50_score
        return None

    @classmethod
    def invalid(cls, error: str) -> "IngredientScores":
        return cls(error=error)


def calculate_scores(
    ingredient: Ingredient,
    criteria: ScoringCriteria,
    visibility: Optional[ToxicityVisibility] = None,
) -> IngredientScores:
    """Score one ingredient and compute its RPN.

    Toxicity comes from PDE when present and visible, otherwise from LD50
    when present and visible. With neither, the RPN has no toxicity term.

    Args:
        ingredient: Ingredient to score
        criteria: Scoring tables
        visibility: Toxicity preference (default: both visible)

    Returns:
        IngredientScores; never raises for bad ingredient data
    """
    visibility = visibility or ToxicityVisibility()

    dose = positive_number(ingredient.therapeutic_dose)
    if dose is None:
        error = (
            f"ingredient {ingredient.name!r} has no usable therapeutic dose "
            f"({ingredient.therapeutic_dose!r})"
        )
        logger.warning("Skipping RPN: %s", error)
        return IngredientScores.invalid(error)

    solubility_score = criteria.solubility.score_text(ingredient.solubility)
    therapeutic_dose_score = criteria.therapeutic_dose.score_value(dose)
    cleanability_score = criteria.cleanability.score_text(ingredient.cleanability)

    pde = positive_number(ingredient.pde)
    ld50 = positive_number(ingredient.ld50)
    pde_score = criteria.toxicity_pde.score_value(pde) if pde is not None else None
    ld50_score = criteria.toxicity_ld50.score_value(ld50) if ld50 is not None else None

    toxicity_source = None
    if visibility.use_pde(pde):
        toxicity_source = "pde"
    elif visibility.use_ld50(ld50):
        toxicity_source = "ld50"

    rpn = solubility_score * therapeutic_dose_score * cleanability_score
    if toxicity_source == "pde":
        rpn *= pde_score
    elif toxicity_source == "ld50":
        rpn *= ld50_score

    return IngredientScores(
        solubility_score=solubility_score,
        therapeutic_dose_score=therapeutic_dose_score,
        cleanability_score=cleanability_score,
        pde_score=pde_score,
        ld50_score=ld50_score,
        toxicity_source=toxicity_source,
        rpn=rpn,
        rpn_rating=criteria.rating_for(rpn),
    )
