"""DuckDB storage for catalog state and calculation results.

Catalog state (products, machines, scoring criteria, detergent
ingredients) lives in a versioned key-value table with undo/redo
snapshots. Computed results can be archived per run for traceability.

Example usage:
    from cleanval.storage import open_store, save_results, connect

    store = open_store()
    store.save_state({"products": [...], "machines": [...]}, label="import")

    run_id = save_results("site_a", view)

    conn = connect()
    df = conn.execute("SELECT * FROM v_run_summary").df()
"""

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

from cleanval.storage.store import STATE_KEYS, StateStore, StoreError

if TYPE_CHECKING:
    from cleanval.engine import DerivedView

DEFAULT_DB_PATH = Path("./cleanval.duckdb")


def save_results(
    catalog_name: str,
    view: "DerivedView",
    db_path: Path | str | None = None,
) -> int:
    """Archive computed results to DuckDB.

    Args:
        catalog_name: Name of the catalog the results were computed from
        view: Computed trains, limits and coverage
        db_path: Path to database file (default: ./cleanval.duckdb)

    Returns:
        run_id of the stored calculation
    """
    from cleanval.storage.writer import DuckDBWriter

    path = Path(db_path) if db_path else DEFAULT_DB_PATH
    writer = DuckDBWriter(path)
    try:
        return writer.store_run(catalog_name, view)
    finally:
        writer.close()


def open_store(db_path: Path | str | None = None) -> StateStore:
    """Open the state store (default: ./cleanval.duckdb)."""
    return StateStore(Path(db_path) if db_path else DEFAULT_DB_PATH)


def get_db_path() -> Path:
    """Return the default database path."""
    return DEFAULT_DB_PATH


def connect(db_path: Path | str | None = None) -> duckdb.DuckDBPyConnection:
    """Get a DuckDB connection for queries.

    Args:
        db_path: Path to database file (default: ./cleanval.duckdb)

    Returns:
        DuckDB connection
    """
    path = Path(db_path) if db_path else DEFAULT_DB_PATH
    return duckdb.connect(str(path))


__all__ = [
    "save_results",
    "open_store",
    "get_db_path",
    "connect",
    "DEFAULT_DB_PATH",
    "STATE_KEYS",
    "StateStore",
    "StoreError",
]
