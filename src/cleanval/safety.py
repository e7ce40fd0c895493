"""Route-of-administration safety factors for MACO calculations."""

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, model_validator

from cleanval.models import DEFAULT_DOSAGE_FORM

logger = logging.getLogger(__name__)


class RouteSafetyFactor(BaseModel):
    """Allowed safety factor range for one route of administration."""

    min: float
    max: float
    route: str
    risk_level: str = "Standard"

    @model_validator(mode="after")
    def _check_bounds(self) -> "RouteSafetyFactor":
        if self.min <= 0 or self.max < self.min:
            raise ValueError(
                f"invalid safety factor range for {self.route}: [{self.min}, {self.max}]"
            )
        return self

    def clamp(self, value: float) -> float:
        """Clamp a user-entered safety factor into [min, max]."""
        return max(self.min, min(self.max, value))


class SafetyFactorConfig(BaseModel):
    """Dosage form to route mapping plus per-route safety factor ranges.

    Route lookup for a dosage form tries, in order: the exact
    ``dosage_form_routes`` entry, keyword detection over
    ``route_keywords`` (checked in file order), then ``fallback_route``.
    """

    routes: Dict[str, RouteSafetyFactor]
    dosage_form_routes: Dict[str, str] = Field(default_factory=dict)
    route_keywords: Dict[str, List[str]] = Field(default_factory=dict)
    hierarchy: List[str] = Field(default_factory=list)
    fallback_route: str = "oral"

    @model_validator(mode="after")
    def _check_routes(self) -> "SafetyFactorConfig":
        referenced = set(self.dosage_form_routes.values()) | set(self.route_keywords)
        referenced.add(self.fallback_route)
        missing = sorted(referenced - set(self.routes))
        if missing:
            raise ValueError(f"unknown routes referenced: {', '.join(missing)}")
        return self

    def detect_route(self, dosage_form: Optional[str]) -> Optional[str]:
        """Keyword-based route detection for dosage forms not in the map."""
        if not dosage_form:
            return None
        form = dosage_form.lower().strip()
        for route, keywords in self.route_keywords.items():
            if any(keyword in form for keyword in keywords):
                return route
        return None

    def route_for(self, dosage_form: Optional[str]) -> str:
        if dosage_form and dosage_form in self.dosage_form_routes:
            return self.dosage_form_routes[dosage_form]
        detected = self.detect_route(dosage_form)
        if detected is not None:
            return detected
        return self.fallback_route

    def worst_case_dosage_form(self, dosage_forms: Iterable[str]) -> str:
        """Pick the highest-risk dosage form among several.

        Forms listed in ``hierarchy`` rank in list order. Otherwise the
        first form not in the hierarchy wins, and "Other" is the fallback.
        """
        forms = list(dosage_forms)
        for form in self.hierarchy:
            if form in forms:
                return form
        for form in forms:
            if form not in self.hierarchy:
                return form
        return DEFAULT_DOSAGE_FORM

    def select(
        self,
        dosage_forms: Iterable[str],
        override: Optional[float] = None,
    ) -> "SafetyFactorSelection":
        """Resolve the safety factor for a set of dosage forms.

        The default is the route maximum. An override is clamped into the
        route's [min, max]; a non-finite override is ignored.
        """
        dosage_form = self.worst_case_dosage_form(dosage_forms)
        route_key = self.route_for(dosage_form)
        route = self.routes[route_key]
        value = route.max
        overridden = False
        clamped = False
        if override is not None:
            if isinstance(override, (int, float)) and math.isfinite(override):
                value = route.clamp(float(override))
                overridden = True
                clamped = value != override
                if clamped:
                    logger.warning(
                        "Safety factor %s for %s clamped to %s (allowed %s-%s)",
                        override,
                        dosage_form,
                        value,
                        route.min,
                        route.max,
                    )
            else:
                logger.warning("Ignoring non-numeric safety factor override %r", override)
        return SafetyFactorSelection(
            dosage_form=dosage_form,
            route_key=route_key,
            route=route,
            value=value,
            overridden=overridden,
            clamped=clamped,
        )


@dataclass(frozen=True)
class SafetyFactorSelection:
    """Safety factor chosen for one train."""

    dosage_form: str
    route_key: str
    route: RouteSafetyFactor
    value: float
    overridden: bool = False
    clamped: bool = False
