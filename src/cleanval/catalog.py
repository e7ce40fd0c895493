"""Catalog integrity rules applied when products and machines are imported."""

import logging
from typing import Dict, List, Sequence

from cleanval.models import Machine, Product

logger = logging.getLogger(__name__)


class CatalogError(ValueError):
    """Raised when a catalog violates a data-model invariant."""

    def __init__(self, problems: Sequence[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def validate_catalog(products: Sequence[Product], machines: Sequence[Machine]) -> List[str]:
    """Check catalog invariants.

    Raises:
        CatalogError: duplicate product codes (case-insensitive), duplicate
            product or machine ids, or ingredients with neither PDE nor LD50

    Returns:
        Non-fatal data-integrity warnings (e.g. unknown machine references)
    """
    problems: List[str] = []
    warnings: List[str] = []

    seen_codes: Dict[str, str] = {}
    seen_ids = set()
    for product in products:
        code = product.product_code.strip().lower()
        if code in seen_codes:
            problems.append(
                f"duplicate product code {product.product_code!r} "
                f"(already used by {seen_codes[code]!r})"
            )
        else:
            seen_codes[code] = product.name
        if product.id in seen_ids:
            problems.append(f"duplicate product id {product.id}")
        seen_ids.add(product.id)
        for ingredient in product.active_ingredients:
            if not ingredient.has_toxicity:
                problems.append(
                    f"ingredient {ingredient.name!r} of {product.product_code!r} "
                    "needs a PDE or LD50 value"
                )

    machine_ids = set()
    for machine in machines:
        if machine.id in machine_ids:
            problems.append(f"duplicate machine id {machine.id}")
        machine_ids.add(machine.id)

    for product in products:
        unknown = sorted(set(product.machine_ids) - machine_ids)
        if unknown:
            warnings.append(
                f"product {product.product_code!r} references unknown machines {unknown}"
            )

    if problems:
        raise CatalogError(problems)
    for message in warnings:
        logger.warning(message)
    return warnings


def remove_ingredient(product: Product, ingredient_id: int) -> Product:
    """Return a copy of product without the given ingredient.

    Raises:
        CatalogError: if the ingredient is the product's last one, or unknown
    """
    remaining = [i for i in product.active_ingredients if i.id != ingredient_id]
    if len(remaining) == len(product.active_ingredients):
        raise CatalogError([f"product {product.product_code!r} has no ingredient {ingredient_id}"])
    if not remaining:
        raise CatalogError(
            [f"cannot remove the last ingredient of product {product.product_code!r}"]
        )
    return product.model_copy(update={"active_ingredients": remaining})
