"""Report command: compute trains, limits and studies and print a summary."""

import logging
from pathlib import Path
from typing import Dict, Optional, Tuple

from cleanval.engine import DerivedView, ValidationEngine
from cleanval.loader import ResolvedConfig
from cleanval.reporting import export_csv
from cleanval.storage import open_store

logger = logging.getLogger(__name__)


def report(
    catalog_name: Optional[str] = None,
    catalog_file: Optional[str] = None,
    config_dir: str = "config",
    from_store: bool = False,
    db_path: Optional[str] = None,
    export: bool = False,
    output_dir: str = "output",
    save_to_db: bool = False,
) -> Tuple[DerivedView, Optional[Dict[str, Path]]]:
    """Compute and print the validation report.

    Exactly one catalog source is used: the state store (``from_store``),
    a catalog file, or a named catalog in ``config_dir/catalogs``.

    Args:
        catalog_name: Catalog config name (without .yaml extension)
        catalog_file: Path to a YAML catalog or JSON data export
        config_dir: Path to config directory
        from_store: If True, read the catalog from the DuckDB state store
        db_path: Custom path for DuckDB file
        export: If True, write CSV reports to output_dir
        output_dir: Output directory for CSV export
        save_to_db: If True, archive results to DuckDB

    Returns:
        Tuple of (derived view, exported paths or None)
    """
    engine = ValidationEngine(config_dir, save_to_db=save_to_db, db_path=db_path)
    resolved = _resolve(engine, catalog_name, catalog_file, from_store, db_path)
    view = engine.run_resolved(resolved)

    print_summary(resolved, view)

    paths = None
    if export:
        paths = export_csv(view, output_dir)
        print(f"\nExported to {output_dir}:")
        for path in paths.values():
            print(f"  {path.name}")
    return view, paths


def _resolve(
    engine: ValidationEngine,
    catalog_name: Optional[str],
    catalog_file: Optional[str],
    from_store: bool,
    db_path: Optional[str],
) -> ResolvedConfig:
    loader = engine.loader
    if from_store:
        store = open_store(db_path)
        try:
            state = store.load_state()
            visibility = store.visibility()
        finally:
            store.close()
        if not state:
            raise FileNotFoundError("State store is empty; run 'import' first")
        resolved = loader.resolve_catalog(loader.parse_catalog(state, default_name="store"))
        resolved.visibility = visibility
        return resolved
    if catalog_file:
        return loader.resolve_catalog(loader.load_catalog_file(catalog_file))
    if not catalog_name:
        raise ValueError("A catalog name, catalog file or --from-store is required")
    return loader.resolve(catalog_name)


def print_summary(resolved: ResolvedConfig, view: DerivedView) -> None:
    """Print train limits, study coverage and warnings."""
    catalog = resolved.catalog
    print(f"\n--- CATALOG: {catalog.name} ---")
    print(f"Products: {len(catalog.products)}")
    print(f"Machines: {len(catalog.machines)}")
    print(f"Trains:   {len(view.trains)}")

    print("\n--- MACO BY TRAIN ---")
    for train in view.trains:
        maco = view.maco[train.key]
        print(
            f"Train {train.number:>2}  {train.line} / {train.dosage_form}  "
            f"machines {train.machine_ids}"
        )
        print(
            f"          MACO {maco.final_maco:,.4f} mg ({maco.selected_method}), "
            f"{maco.maco_per_area:.6f} mg/cm², {maco.maco_per_swab:.4f} mg/swab"
        )

    print("\n--- STUDIES REQUIRED ---")
    for (line, dosage_form), selection in view.coverage.groups.items():
        numbers = ", ".join(str(t.number) for t in selection.selected_trains)
        print(
            f"{line} / {dosage_form}: {selection.count} of {selection.train_count} "
            f"trains (trains {numbers})"
        )
    print(f"Total studies required: {view.coverage.total}")

    warnings = view.warnings
    if warnings:
        print(f"\n--- WARNINGS ({len(warnings)}) ---")
        for message in warnings:
            print(f"  {message}")
