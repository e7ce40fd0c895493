"""Tabular reports built from a DerivedView.

Each function returns a pandas DataFrame ready for display or export.
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import pandas as pd

from cleanval.engine import DerivedView
from cleanval.models import Machine, Product, ToxicityVisibility
from cleanval.scoring import ScoringCriteria, calculate_scores

TRAIN_SUMMARY_COLUMNS = [
    "train_number",
    "train_key",
    "line",
    "dosage_form",
    "machine_ids",
    "product_ids",
    "products",
    "essa",
    "line_largest_essa",
    "lowest_ltd",
    "lowest_pde",
    "lowest_ld50",
    "min_mbs_kg",
    "min_bs_mdd_ratio",
    "worst_rpn",
    "worst_product",
    "worst_ingredient",
    "rpn_rating",
    "route",
    "safety_factor",
    "final_maco",
    "selected_method",
    "maco_per_area",
    "maco_per_swab",
    "detergent_maco",
    "used_sentinel",
    "selected_for_study",
    "warnings",
]


def train_summary(view: DerivedView) -> pd.DataFrame:
    """One row per train with aggregates, governing MACO and study flag."""
    study_keys = {
        study.train.key
        for selection in view.coverage.groups.values()
        for study in selection.studies
    }
    rows = []
    for train in view.trains:
        maco = view.maco.get(train.key)
        detergent = view.detergent_maco.get(train.key)
        selection = view.safety_factors.get(train.key)
        worst = train.worst_product_rpn
        warnings = list(train.warnings)
        if maco:
            warnings.extend(maco.warnings)
        rows.append(
            {
                "train_number": train.number,
                "train_key": train.key,
                "line": train.line,
                "dosage_form": train.dosage_form,
                "machine_ids": list(train.machine_ids),
                "product_ids": train.product_ids,
                "products": ", ".join(p.name for p in train.products),
                "essa": train.essa,
                "line_largest_essa": maco.line_largest_essa if maco else None,
                "lowest_ltd": train.lowest_ltd,
                "lowest_pde": train.lowest_pde,
                "lowest_ld50": train.lowest_ld50,
                "min_mbs_kg": train.min_mbs_kg,
                "min_bs_mdd_ratio": train.min_bs_mdd_ratio,
                "worst_rpn": train.worst_rpn,
                "worst_product": worst.product_name if worst else None,
                "worst_ingredient": worst.ingredient_name if worst else None,
                "rpn_rating": worst.rating if worst else None,
                "route": selection.route.route if selection else None,
                "safety_factor": selection.value if selection else None,
                "final_maco": maco.final_maco if maco else None,
                "selected_method": maco.selected_method if maco else None,
                "maco_per_area": maco.maco_per_area if maco else None,
                "maco_per_swab": maco.maco_per_swab if maco else None,
                "detergent_maco": detergent.maco if detergent else None,
                "used_sentinel": maco.used_sentinel if maco else False,
                "selected_for_study": train.key in study_keys,
                "warnings": warnings,
            }
        )
    return pd.DataFrame(rows, columns=TRAIN_SUMMARY_COLUMNS)


def maco_breakdown(view: DerivedView) -> pd.DataFrame:
    """One row per (train, candidate formula)."""
    rows = []
    for train in view.trains:
        result = view.maco.get(train.key)
        if result is None:
            continue
        for candidate in result.candidates:
            rows.append(
                {
                    "train_number": train.number,
                    "method": candidate.method.value,
                    "value_mg": candidate.value,
                    "eligible": candidate.eligible,
                    "selected": candidate.method.value == result.selected_method,
                }
            )
    return pd.DataFrame(
        rows, columns=["train_number", "method", "value_mg", "eligible", "selected"]
    )


def required_studies(view: DerivedView) -> pd.DataFrame:
    """Selected studies per (line, dosage form) group, in selection order."""
    rows = []
    for (line, dosage_form), selection in view.coverage.groups.items():
        for study in selection.studies:
            worst = study.train.worst_product_rpn
            rows.append(
                {
                    "line": line,
                    "dosage_form": dosage_form,
                    "study_number": study.study_number,
                    "train_number": study.train.number,
                    "worst_product": worst.product_name if worst else None,
                    "rpn": study.rpn,
                    "machines_covered": len(study.machine_ids),
                    "new_machines_covered": len(study.new_machine_ids),
                    "justification": study.justification,
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "line",
            "dosage_form",
            "study_number",
            "train_number",
            "worst_product",
            "rpn",
            "machines_covered",
            "new_machines_covered",
            "justification",
        ],
    )


def coverage_summary(view: DerivedView) -> pd.DataFrame:
    """Trains versus studies required for each group."""
    rows = [
        {
            "line": line,
            "dosage_form": dosage_form,
            "trains": selection.train_count,
            "studies_required": selection.count,
            "machines_covered": len(selection.covered_machine_ids),
            "savings_percent": round(selection.savings_percent, 1),
        }
        for (line, dosage_form), selection in view.coverage.groups.items()
    ]
    return pd.DataFrame(
        rows,
        columns=[
            "line",
            "dosage_form",
            "trains",
            "studies_required",
            "machines_covered",
            "savings_percent",
        ],
    )


MACHINE_COVERAGE_COLUMNS = ["line", "dosage_form", "train_number", "study_number", "products"]


def machine_coverage(
    view: DerivedView,
    machines: Optional[Sequence[Machine]] = None,
    stage_order: Optional[Sequence[str]] = None,
) -> pd.DataFrame:
    """Train by machine matrix grouped by line and dosage form.

    One row per train. Machine columns follow the stage display order,
    then machine id; stages missing from the order sort with "Other", or
    last when "Other" is absent too. A cell holds the number of the study
    that first covers the machine within the train's group, and is empty
    where the train does not use the machine. ``study_number`` is set only
    on trains selected as studies.
    """
    machines = view.machines if machines is None else machines
    stage_order = list(view.stage_display_order if stage_order is None else stage_order)
    by_id = {m.id: m for m in machines}

    used_ids = sorted({mid for train in view.trains for mid in train.machine_ids})
    ordered = sorted(used_ids, key=lambda mid: (_stage_rank(by_id.get(mid), stage_order), mid))
    labels = {mid: _machine_label(mid, by_id.get(mid)) for mid in ordered}

    rows = []
    for (line, dosage_form), selection in view.coverage.groups.items():
        study_by_train: Dict[str, int] = {}
        covering_study: Dict[int, int] = {}
        for study in selection.studies:
            study_by_train[study.train.key] = study.study_number
            for mid in study.new_machine_ids:
                covering_study[mid] = study.study_number
        for train in view.trains:
            if (train.line, train.dosage_form) != (line, dosage_form):
                continue
            row = {
                "line": line,
                "dosage_form": dosage_form,
                "train_number": train.number,
                "study_number": study_by_train.get(train.key),
                "products": ", ".join(p.name for p in train.products),
            }
            for mid in ordered:
                row[labels[mid]] = covering_study.get(mid, "") if mid in train.machine_ids else ""
            rows.append(row)
    columns = MACHINE_COVERAGE_COLUMNS + [labels[mid] for mid in ordered]
    return pd.DataFrame(rows, columns=columns)


def _stage_rank(machine: Optional[Machine], stage_order: List[str]) -> int:
    stage = machine.stage if machine else "Other"
    if stage in stage_order:
        return stage_order.index(stage)
    if "Other" in stage_order:
        return stage_order.index("Other")
    return len(stage_order)


def _machine_label(machine_id: int, machine: Optional[Machine]) -> str:
    if machine is None:
        return f"#{machine_id}"
    return f"{machine.machine_number or machine_id} {machine.name}"


def product_register(
    products: Sequence[Product],
    criteria: ScoringCriteria,
    visibility: Optional[ToxicityVisibility] = None,
) -> pd.DataFrame:
    """One row per (product, ingredient) with component scores and RPN."""
    rows = []
    for product in products:
        for ingredient in product.active_ingredients:
            scores = calculate_scores(ingredient, criteria, visibility)
            rows.append(
                {
                    "product_code": product.product_code,
                    "product_name": product.name,
                    "dosage_form": product.dosage_form,
                    "line": product.line,
                    "is_critical": product.is_critical,
                    "ingredient": ingredient.name,
                    "solubility_score": scores.solubility_score,
                    "therapeutic_dose_score": scores.therapeutic_dose_score,
                    "cleanability_score": scores.cleanability_score,
                    "toxicity_source": scores.toxicity_source,
                    "toxicity_score": scores.toxicity_score,
                    "rpn": scores.rpn,
                    "rpn_rating": scores.rpn_rating,
                    "samples": criteria.samples_for(scores.rpn) if scores.valid else None,
                    "error": scores.error,
                }
            )
    return pd.DataFrame(rows)


def export_csv(
    view: DerivedView,
    output_dir: Path | str,
    timestamp: Optional[str] = None,
) -> Dict[str, Path]:
    """Write the train, MACO, study, coverage and machine reports as timestamped CSVs.

    Returns:
        Mapping of report name to written path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    timestamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")

    reports = {
        "trains": train_summary(view),
        "maco_breakdown": maco_breakdown(view),
        "studies": required_studies(view),
        "coverage": coverage_summary(view),
        "machine_coverage": machine_coverage(view),
    }
    paths: Dict[str, Path] = {}
    for name, df in reports.items():
        path = output_dir / f"{name}_{timestamp}.csv"
        df.to_csv(path, index=False)
        paths[name] = path
    return paths
