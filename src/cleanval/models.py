"""Pydantic schemas for the product, ingredient and equipment catalog."""

import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

DEFAULT_LINE = "Unassigned"
DEFAULT_DOSAGE_FORM = "Other"


def positive_number(value: Optional[float]) -> Optional[float]:
    """Return value as a float if it is finite and > 0, else None."""
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isfinite(number) and number > 0:
        return number
    return None


class CatalogModel(BaseModel):
    """Base model accepting both snake_case and camelCase field names.

    camelCase lets backups exported from the legacy browser tool load
    without translation.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Ingredient(CatalogModel):
    """One active pharmaceutical ingredient within a product.

    Numeric fields are optional so malformed stored records still load;
    the scoring and train code report them as invalid instead.
    """

    id: int
    name: str = ""
    therapeutic_dose: Optional[float] = None  # mg
    mdd: Optional[float] = None  # Maximum daily dose (mg)
    solubility: Optional[str] = None
    cleanability: Optional[str] = None
    pde: Optional[float] = None  # Permitted daily exposure (mg/day)
    ld50: Optional[float] = None  # mg/kg

    @property
    def mdd_g(self) -> Optional[float]:
        """Maximum daily dose in grams (None when mdd is unusable)."""
        mdd_mg = positive_number(self.mdd)
        return mdd_mg / 1000 if mdd_mg is not None else None

    @property
    def has_toxicity(self) -> bool:
        """True when at least one of PDE or LD50 is usable."""
        return positive_number(self.pde) is not None or positive_number(self.ld50) is not None


class Product(CatalogModel):
    """A manufactured product and the equipment path it runs on."""

    id: int
    product_code: str
    name: str
    product_type: Optional[str] = None  # Dosage form
    line: str = DEFAULT_LINE
    batch_size_kg: Optional[float] = None
    machine_ids: List[int] = Field(default_factory=list)
    active_ingredients: List[Ingredient]
    is_critical: bool = False
    critical_reason: str = ""
    date: Optional[datetime] = None

    @field_validator("line", mode="before")
    @classmethod
    def _default_line(cls, value):
        if value is None or not str(value).strip():
            return DEFAULT_LINE
        return value

    @field_validator("critical_reason", mode="before")
    @classmethod
    def _none_reason(cls, value):
        return "" if value is None else value

    @field_validator("active_ingredients")
    @classmethod
    def _require_ingredient(cls, value: List[Ingredient]) -> List[Ingredient]:
        if not value:
            raise ValueError("a product must have at least one active ingredient")
        return value

    @model_validator(mode="after")
    def _require_critical_reason(self) -> "Product":
        if self.is_critical and not self.critical_reason.strip():
            raise ValueError(
                f"product {self.product_code!r} is flagged critical but has no reason"
            )
        return self

    @property
    def dosage_form(self) -> str:
        """Dosage form used for train grouping."""
        if self.product_type and self.product_type.strip():
            return self.product_type
        return DEFAULT_DOSAGE_FORM


class Machine(CatalogModel):
    """A piece of shared manufacturing equipment."""

    id: int
    name: str
    machine_number: str = ""
    stage: str = "Other"
    area: Optional[float] = None  # Shared surface area (cm²)
    line: str = DEFAULT_LINE
    group: str = ""

    @field_validator("line", mode="before")
    @classmethod
    def _default_line(cls, value):
        if value is None or not str(value).strip():
            return DEFAULT_LINE
        return value


class DetergentIngredient(CatalogModel):
    """Cleaning agent ingredient used for detergent residue limits."""

    id: int
    name: str = ""
    ld50: Optional[float] = None  # mg/kg


class ToxicityVisibility(BaseModel):
    """User preference hiding PDE and/or LD50 from risk and limit calculations."""

    pde_hidden: bool = False
    ld50_hidden: bool = False

    def use_pde(self, pde: Optional[float]) -> bool:
        return not self.pde_hidden and positive_number(pde) is not None

    def use_ld50(self, ld50: Optional[float]) -> bool:
        return not self.ld50_hidden and positive_number(ld50) is not None
