"""DuckDB writer for archiving calculation results."""

import hashlib
import json
from importlib.metadata import version
from pathlib import Path

import duckdb
import pandas as pd

from cleanval.engine import DerivedView
from cleanval.reporting import train_summary
from cleanval.storage.schema import create_tables

__version__ = version("cleanval")


class DuckDBWriter:
    """Writes calculation results to a DuckDB database."""

    def __init__(self, db_path: Path):
        """Initialize writer and ensure schema exists.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = db_path
        self.conn = duckdb.connect(str(db_path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist."""
        create_tables(self.conn)

    def store_run(self, catalog_name: str, view: DerivedView) -> int:
        """Store one calculation.

        Args:
            catalog_name: Name of the catalog the view was computed from
            view: Computed trains, limits and coverage

        Returns:
            run_id of the stored calculation
        """
        df = train_summary(view)
        run_id = self._insert_run(catalog_name, view, df)
        self._insert_train_results(run_id, df)
        return run_id

    def _insert_run(self, catalog_name: str, view: DerivedView, df: pd.DataFrame) -> int:
        """Insert parent record and return run_id."""
        input_hash = hashlib.sha256(
            json.dumps(
                [[t.key, t.product_ids] for t in view.trains], sort_keys=True
            ).encode()
        ).hexdigest()[:16]

        run_id = self.conn.execute(
            "SELECT nextval('seq_calculation_runs_id')"
        ).fetchone()[0]

        self.conn.execute(
            """
            INSERT INTO calculation_runs (
                run_id, catalog_name, input_hash, train_count,
                studies_required, warning_count, cleanval_version
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                run_id,
                catalog_name,
                input_hash,
                len(view.trains),
                view.coverage.total,
                len(view.warnings),
                __version__,
            ],
        )
        return run_id

    def _insert_train_results(self, run_id: int, df: pd.DataFrame) -> None:
        """Bulk insert per-train rows from the train summary DataFrame."""
        if df.empty:
            return

        df_insert = df.copy()
        for column in ("machine_ids", "product_ids", "warnings"):
            df_insert[column] = df_insert[column].apply(json.dumps)

        max_id_result = self.conn.execute(
            "SELECT COALESCE(MAX(id), 0) FROM train_results"
        ).fetchone()
        start_id = max_id_result[0] + 1
        df_insert["id"] = range(start_id, start_id + len(df_insert))
        df_insert["run_id"] = run_id

        self.conn.register("train_results_df", df_insert)
        self.conn.execute(
            """
            INSERT INTO train_results (
                id, run_id, train_key, train_number, line, dosage_form,
                machine_ids, product_ids, essa, line_largest_essa,
                lowest_ltd, lowest_pde, lowest_ld50, min_mbs_kg, min_bs_mdd_ratio,
                worst_rpn, worst_product, worst_ingredient, safety_factor,
                final_maco, selected_method, maco_per_area, maco_per_swab,
                detergent_maco, used_sentinel, selected_for_study, warnings
            )
            SELECT id, run_id, train_key, train_number, line, dosage_form,
                machine_ids, product_ids, essa, line_largest_essa,
                lowest_ltd, lowest_pde, lowest_ld50, min_mbs_kg, min_bs_mdd_ratio,
                worst_rpn, worst_product, worst_ingredient, safety_factor,
                final_maco, selected_method, maco_per_area, maco_per_swab,
                detergent_maco, used_sentinel, selected_for_study, warnings
            FROM train_results_df
            """
        )
        self.conn.unregister("train_results_df")

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
