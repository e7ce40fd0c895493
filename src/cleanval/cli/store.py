"""State store commands: import, export, undo, redo, history."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from cleanval.loader import ConfigLoader, override_entries
from cleanval.models import ToxicityVisibility
from cleanval.storage import open_store
from cleanval.storage.store import (
    DETERGENTS_KEY,
    MACHINES_KEY,
    PRODUCTS_KEY,
    SAFETY_OVERRIDES_KEY,
    SCORING_KEY,
    STAGE_ORDER_KEY,
)


def import_catalog(
    source: str,
    config_dir: str = "config",
    db_path: Optional[str] = None,
    label: Optional[str] = None,
) -> int:
    """Validate a catalog and save it as the current state.

    Args:
        source: Catalog config name, or path to a YAML/JSON catalog file
        config_dir: Path to config directory
        db_path: Custom path for DuckDB file
        label: History label (default: "import <source>")

    Returns:
        History version of the saved state
    """
    loader = ConfigLoader(config_dir)
    path = Path(source)
    if path.suffix.lower() in (".yaml", ".yml", ".json"):
        catalog = loader.load_catalog_file(path)
    else:
        catalog = loader.load_catalog(source)

    criteria = catalog.scoring or loader.load_scoring()
    state: Dict[str, Any] = {
        PRODUCTS_KEY: [p.model_dump(mode="json") for p in catalog.products],
        MACHINES_KEY: [m.model_dump(mode="json") for m in catalog.machines],
        DETERGENTS_KEY: [d.model_dump(mode="json") for d in catalog.detergents],
        SCORING_KEY: criteria.model_dump(mode="json"),
        STAGE_ORDER_KEY: list(catalog.stage_display_order or loader.defaults.stage_display_order),
        SAFETY_OVERRIDES_KEY: override_entries(catalog.safety_factor_overrides),
    }

    store = open_store(db_path)
    try:
        version = store.save_state(state, label=label or f"import {source}")
    finally:
        store.close()

    print(f"Imported {catalog.name}: {len(catalog.products)} products, "
          f"{len(catalog.machines)} machines (state version {version})")
    for message in catalog.warnings:
        print(f"  warning: {message}")
    return version


def export_state(output_path: str, db_path: Optional[str] = None) -> Path:
    """Write the current state as a JSON data export."""
    store = open_store(db_path)
    try:
        state = store.load_state()
    finally:
        store.close()

    data = {"export_date": datetime.now().isoformat(), **state}
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    print(f"Exported state to {path}")
    return path


def undo(db_path: Optional[str] = None) -> Dict[str, Any]:
    """Restore the previous state snapshot."""
    store = open_store(db_path)
    try:
        state = store.undo()
    finally:
        store.close()
    print(f"Undo: {len(state.get(PRODUCTS_KEY, []))} products restored")
    return state


def redo(db_path: Optional[str] = None) -> Dict[str, Any]:
    """Re-apply the next state snapshot."""
    store = open_store(db_path)
    try:
        state = store.redo()
    finally:
        store.close()
    print(f"Redo: {len(state.get(PRODUCTS_KEY, []))} products restored")
    return state


def history(db_path: Optional[str] = None) -> pd.DataFrame:
    """Print and return the state history."""
    store = open_store(db_path)
    try:
        df = store.history()
    finally:
        store.close()
    if df.empty:
        print("No history")
    else:
        print(df.to_string(index=False))
    return df


def set_visibility(
    pde_hidden: Optional[bool] = None,
    ld50_hidden: Optional[bool] = None,
    db_path: Optional[str] = None,
) -> ToxicityVisibility:
    """Update the toxicity preference flags; None leaves a flag unchanged."""
    store = open_store(db_path)
    try:
        current = store.visibility()
        updated = ToxicityVisibility(
            pde_hidden=current.pde_hidden if pde_hidden is None else pde_hidden,
            ld50_hidden=current.ld50_hidden if ld50_hidden is None else ld50_hidden,
        )
        store.set_visibility(updated)
    finally:
        store.close()
    print(f"PDE hidden: {updated.pde_hidden}, LD50 hidden: {updated.ld50_hidden}")
    return updated
