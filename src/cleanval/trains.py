"""Train construction: group products by shared equipment path.

A train is the set of products in one production line and dosage form
that run on exactly the same machines. Each train carries the aggregate
inputs the MACO formulas need (lowest dose, lowest PDE/LD50, smallest
batch, smallest batch/MDD ratio, shared surface area) and its worst-case
RPN ingredient.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from cleanval.models import (
    Ingredient,
    Machine,
    Product,
    ToxicityVisibility,
    positive_number,
)
from cleanval.scoring import ScoringCriteria, calculate_scores

logger = logging.getLogger(__name__)

DEFAULT_ASSUMED_SSA = 25.0  # Swab sample area (cm²)


@dataclass(frozen=True)
class WorstProductRpn:
    """Highest-RPN ingredient found in a train."""

    product_id: int
    product_name: str
    ingredient_name: str
    rpn: int
    rating: str


@dataclass
class Train:
    """Products sharing one line, dosage form and machine set.

    ``key`` is deterministic for the same inputs. ``id`` is a surrogate
    valid only within one build, and ``number`` is the display sequence
    assigned by :func:`order_trains`.
    """

    key: str
    id: int
    line: str
    dosage_form: str
    machine_ids: List[int]
    products: List[Product] = field(default_factory=list)
    number: int = 0
    essa: float = 0.0  # Equipment shared surface area (cm²)
    assumed_ssa: float = DEFAULT_ASSUMED_SSA

    lowest_ltd: float = 0.0  # mg
    lowest_ltd_product_id: Optional[int] = None
    lowest_pde: Optional[float] = None
    lowest_ld50: Optional[float] = None
    min_mbs_kg: float = 0.0
    min_mbs_product_id: Optional[int] = None
    min_bs_mdd_ratio: float = 0.0
    min_bs_mdd_ratio_product_id: Optional[int] = None
    worst_product_rpn: Optional[WorstProductRpn] = None

    warnings: List[str] = field(default_factory=list)

    @property
    def group(self) -> Tuple[str, str]:
        """(line, dosage_form) grouping used for ESSA and study coverage."""
        return (self.line, self.dosage_form)

    @property
    def worst_rpn(self) -> int:
        return self.worst_product_rpn.rpn if self.worst_product_rpn else 0

    @property
    def product_ids(self) -> List[int]:
        return [p.id for p in self.products]

    def ingredients(self) -> Iterator[Tuple[Product, Ingredient]]:
        for product in self.products:
            for ingredient in product.active_ingredients:
                yield product, ingredient

    def warn(self, message: str) -> None:
        logger.warning("Train %s: %s", self.key, message)
        self.warnings.append(message)


def train_key(line: str, dosage_form: str, machine_ids: Sequence[int]) -> str:
    """Deterministic identity for a train: line, dosage form, sorted machine ids."""
    return json.dumps([line, dosage_form, sorted(set(machine_ids))])


def build_trains(
    products: Sequence[Product],
    machines: Sequence[Machine],
    criteria: ScoringCriteria,
    visibility: Optional[ToxicityVisibility] = None,
    assumed_ssa: float = DEFAULT_ASSUMED_SSA,
) -> List[Train]:
    """Partition products into trains and compute their aggregates.

    Products without machines are left out. Machine order within a
    product is irrelevant: ids are sorted and de-duplicated before keying.

    Args:
        products: Product catalog
        machines: Machine catalog (for surface areas)
        criteria: Scoring tables for worst-case RPN
        visibility: Toxicity preference
        assumed_ssa: Swab sample area assigned to each train (cm²)

    Returns:
        Trains ordered and numbered by :func:`order_trains`
    """
    machine_index = {m.id: m for m in machines}
    trains: Dict[str, Train] = {}

    for product in products:
        if not product.machine_ids:
            continue
        machine_ids = sorted(set(product.machine_ids))
        key = train_key(product.line, product.dosage_form, machine_ids)
        train = trains.get(key)
        if train is None:
            train = Train(
                key=key,
                id=len(trains) + 1,
                line=product.line,
                dosage_form=product.dosage_form,
                machine_ids=machine_ids,
                assumed_ssa=assumed_ssa,
            )
            trains[key] = train
        train.products.append(product)

    for train in trains.values():
        train.essa = _shared_surface_area(train, machine_index)
        _compute_aggregates(train, criteria, visibility)

    return order_trains(list(trains.values()))


def order_trains(trains: Sequence[Train]) -> List[Train]:
    """Sort by line, dosage form, then discovery order and number 1..N.

    Numbers are deterministic for a given catalog snapshot but may change
    after any product or machine edit.
    """
    ordered = sorted(trains, key=lambda t: (t.line, t.dosage_form, t.id))
    for number, train in enumerate(ordered, start=1):
        train.number = number
    return ordered


def line_largest_essa(train: Train, trains: Sequence[Train]) -> float:
    """Largest ESSA among trains sharing the train's line and dosage form."""
    areas = [t.essa for t in trains if t.group == train.group]
    return max(areas) if areas else train.essa


def _shared_surface_area(train: Train, machine_index: Dict[int, Machine]) -> float:
    essa = 0.0
    for machine_id in train.machine_ids:
        machine = machine_index.get(machine_id)
        if machine is None:
            train.warn(f"machine {machine_id} not found in catalog, area counted as 0")
            continue
        area = positive_number(machine.area)
        if area is None:
            if machine.area not in (None, 0):
                train.warn(f"machine {machine_id} has invalid area {machine.area!r}")
            continue
        essa += area
    return essa


def _compute_aggregates(
    train: Train,
    criteria: ScoringCriteria,
    visibility: Optional[ToxicityVisibility],
) -> None:
    for product, ingredient in train.ingredients():
        dose = positive_number(ingredient.therapeutic_dose)
        if dose is not None and (
            train.lowest_ltd_product_id is None or dose < train.lowest_ltd
        ):
            train.lowest_ltd = dose
            train.lowest_ltd_product_id = product.id

        pde = positive_number(ingredient.pde)
        if pde is not None and (train.lowest_pde is None or pde < train.lowest_pde):
            train.lowest_pde = pde

        ld50 = positive_number(ingredient.ld50)
        if ld50 is not None and (train.lowest_ld50 is None or ld50 < train.lowest_ld50):
            train.lowest_ld50 = ld50

        ratio = batch_size_mdd_ratio(product, ingredient)
        if ratio is not None and (
            train.min_bs_mdd_ratio_product_id is None or ratio < train.min_bs_mdd_ratio
        ):
            train.min_bs_mdd_ratio = ratio
            train.min_bs_mdd_ratio_product_id = product.id

        scores = calculate_scores(ingredient, criteria, visibility)
        if not scores.valid:
            train.warn(f"product {product.product_code}: {scores.error}")
        if train.worst_product_rpn is None or scores.rpn > train.worst_product_rpn.rpn:
            train.worst_product_rpn = WorstProductRpn(
                product_id=product.id,
                product_name=product.name,
                ingredient_name=ingredient.name,
                rpn=scores.rpn,
                rating=scores.rpn_rating,
            )

    for product in train.products:
        batch = positive_number(product.batch_size_kg)
        if batch is not None and (
            train.min_mbs_product_id is None or batch < train.min_mbs_kg
        ):
            train.min_mbs_kg = batch
            train.min_mbs_product_id = product.id

    if train.lowest_ltd_product_id is None:
        train.warn("no valid therapeutic dose, lowest LTD set to 0")
    if train.min_mbs_product_id is None:
        train.warn("no valid batch size, minimum batch size set to 0")
    if train.min_bs_mdd_ratio_product_id is None:
        train.warn("no valid batch size/MDD ratio, ratio set to 0")


def batch_size_mdd_ratio(product: Product, ingredient: Ingredient) -> Optional[float]:
    """Batch size (g) divided by maximum daily dose (g).

    MDD is stored in mg; it is converted to grams here.
    """
    batch_kg = positive_number(product.batch_size_kg)
    mdd_g = ingredient.mdd_g
    if batch_kg is None or mdd_g is None:
        return None
    return (batch_kg * 1000) / mdd_g
