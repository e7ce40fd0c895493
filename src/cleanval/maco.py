"""Maximum Allowable Carryover (MACO) limits for a train.

Five candidate limits are evaluated and the smallest positive finite one
governs. All candidate values are in mg.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from cleanval.models import DetergentIngredient, ToxicityVisibility, positive_number
from cleanval.trains import Train

logger = logging.getLogger(__name__)

# Governing limit when no candidate is positive and finite. Nonzero so
# per-area and per-swab divisions stay defined; small enough that any
# measured residue fails against it.
MACO_SENTINEL_MG = 1e-6

VISUAL_LIMIT_MG_PER_CM2 = 0.004
TEN_PPM_FACTOR = 10
NOEL_BODY_WEIGHT_KG = 70
NOEL_LD50_DIVISOR = 2000
DETERGENT_ADI_FACTOR = 5e-4
DEFAULT_BODY_WEIGHT_KG = 70.0


class MacoMethod(str, Enum):
    """Candidate MACO formulas, in evaluation order."""

    THERAPEUTIC_DOSE = "0.1% Therapeutic Dose"
    TEN_PPM = "10 ppm Criterion"
    PDE = "Health-Based Limit (PDE)"
    NOEL = "Health-Based Limit (NOEL)"
    VISUAL = "Visual Clean Limit"


SENTINEL_METHOD = "Sentinel (no valid candidate)"


@dataclass(frozen=True)
class MacoCandidate:
    """One evaluated MACO formula."""

    method: MacoMethod
    value: float  # mg, may be NaN when inputs are unusable

    @property
    def eligible(self) -> bool:
        return positive_number(self.value) is not None


@dataclass
class MacoResult:
    """MACO breakdown for one train."""

    train_key: str
    final_maco: float
    selected_method: str
    maco_per_area: float  # mg/cm²
    maco_per_swab: float  # mg/swab
    safety_factor: float
    line_largest_essa: float
    candidates: List[MacoCandidate] = field(default_factory=list)
    used_sentinel: bool = False
    warnings: List[str] = field(default_factory=list)

    def candidate(self, method: MacoMethod) -> Optional[MacoCandidate]:
        for candidate in self.candidates:
            if candidate.method is method:
                return candidate
        return None


@dataclass
class DetergentMacoResult:
    """Detergent residue limit for one train, based on acceptable daily intake."""

    train_key: str
    detergent_name: Optional[str]
    min_ld50: Optional[float]
    adi: float  # mg/day
    maco: float  # mg
    maco_per_area: float
    maco_per_swab: float
    safety_factor: float
    body_weight_kg: float
    used_sentinel: bool = False
    warnings: List[str] = field(default_factory=list)


def min_mdd_g(train: Train) -> Optional[float]:
    """Smallest usable maximum daily dose across the train, in grams."""
    values = [ing.mdd_g for _, ing in train.ingredients() if ing.mdd_g is not None]
    return min(values) if values else None


def _divide(numerator: float, denominator: Optional[float]) -> float:
    if denominator is None or denominator == 0 or not math.isfinite(denominator):
        return math.nan
    return numerator / denominator


def _per_area(maco: float, essa: float) -> float:
    if essa is None or not math.isfinite(essa) or essa <= 0:
        return 0.0
    return maco / essa


def calculate_maco(
    train: Train,
    line_largest_essa: float,
    safety_factor: float,
    visibility: Optional[ToxicityVisibility] = None,
    visual_limit: float = VISUAL_LIMIT_MG_PER_CM2,
) -> MacoResult:
    """Evaluate all candidate MACO formulas and select the governing limit.

    Bad train data never raises: unusable candidates become NaN and are
    skipped, and when nothing qualifies :data:`MACO_SENTINEL_MG` is used.

    Args:
        train: Train with computed aggregates
        line_largest_essa: Largest ESSA in the train's line and dosage form
        safety_factor: Route safety factor (divisor)
        visibility: Toxicity preference; hidden PDE/LD50 drop their candidate
        visual_limit: Visual clean limit (mg/cm²)

    Returns:
        MacoResult with all candidates and the derived per-area/per-swab limits
    """
    visibility = visibility or ToxicityVisibility()
    warnings: List[str] = []

    sf = positive_number(safety_factor)
    if sf is None:
        warnings.append(f"invalid safety factor {safety_factor!r}")

    candidates = [
        MacoCandidate(
            MacoMethod.THERAPEUTIC_DOSE,
            _divide(train.lowest_ltd * train.min_bs_mdd_ratio, sf),
        ),
        MacoCandidate(MacoMethod.TEN_PPM, TEN_PPM_FACTOR * train.min_mbs_kg),
    ]

    if visibility.use_pde(train.lowest_pde):
        candidates.append(
            MacoCandidate(MacoMethod.PDE, train.lowest_pde * train.min_bs_mdd_ratio)
        )

    if visibility.use_ld50(train.lowest_ld50):
        noel_g = (train.lowest_ld50 * NOEL_BODY_WEIGHT_KG) / NOEL_LD50_DIVISOR
        mdd_g = min_mdd_g(train)
        if mdd_g is None:
            warnings.append("no valid MDD, NOEL limit skipped")
        value = math.nan
        if sf is not None and mdd_g is not None:
            value = (noel_g * train.min_mbs_kg * 1000) / (sf * mdd_g)
        candidates.append(MacoCandidate(MacoMethod.NOEL, value))

    candidates.append(MacoCandidate(MacoMethod.VISUAL, visual_limit * line_largest_essa))

    eligible = [c for c in candidates if c.eligible]
    if eligible:
        # min() keeps the first of equal values, i.e. evaluation order
        selected = min(eligible, key=lambda c: c.value)
        final_maco = selected.value
        method = selected.method.value
        used_sentinel = False
    else:
        final_maco = MACO_SENTINEL_MG
        method = SENTINEL_METHOD
        used_sentinel = True
        warnings.append(
            f"no positive finite MACO candidate, using sentinel {MACO_SENTINEL_MG} mg"
        )

    for message in warnings:
        logger.warning("Train %s: %s", train.key, message)

    maco_per_area = _per_area(final_maco, line_largest_essa)
    return MacoResult(
        train_key=train.key,
        final_maco=final_maco,
        selected_method=method,
        maco_per_area=maco_per_area,
        maco_per_swab=maco_per_area * train.assumed_ssa,
        safety_factor=sf if sf is not None else 0.0,
        line_largest_essa=line_largest_essa,
        candidates=candidates,
        used_sentinel=used_sentinel,
        warnings=warnings,
    )


def calculate_detergent_maco(
    train: Train,
    detergents: Sequence[DetergentIngredient],
    largest_essa: float,
    safety_factor: float,
    body_weight_kg: float = DEFAULT_BODY_WEIGHT_KG,
) -> DetergentMacoResult:
    """Detergent residue limit from the most toxic detergent ingredient.

    ``ADI = (5e-4 × LD50 × body weight) / SF`` and
    ``MACO = ADI × min batch size/MDD ratio``.
    """
    warnings: List[str] = []
    usable = [d for d in detergents if positive_number(d.ld50) is not None]
    worst = min(usable, key=lambda d: d.ld50) if usable else None

    sf = positive_number(safety_factor)
    adi = 0.0
    if worst is None:
        warnings.append("no detergent ingredient with a valid LD50")
    elif sf is None:
        warnings.append(f"invalid safety factor {safety_factor!r}")
    else:
        adi = (DETERGENT_ADI_FACTOR * worst.ld50 * body_weight_kg) / sf

    maco = adi * train.min_bs_mdd_ratio
    used_sentinel = positive_number(maco) is None
    if used_sentinel:
        warnings.append(
            f"detergent MACO not computable, using sentinel {MACO_SENTINEL_MG} mg"
        )
        maco = MACO_SENTINEL_MG

    for message in warnings:
        logger.warning("Train %s detergent: %s", train.key, message)

    maco_per_area = _per_area(maco, largest_essa)
    return DetergentMacoResult(
        train_key=train.key,
        detergent_name=worst.name if worst else None,
        min_ld50=worst.ld50 if worst else None,
        adi=adi,
        maco=maco,
        maco_per_area=maco_per_area,
        maco_per_swab=maco_per_area * train.assumed_ssa,
        safety_factor=sf if sf is not None else 0.0,
        body_weight_kg=body_weight_kg,
        used_sentinel=used_sentinel,
        warnings=warnings,
    )
