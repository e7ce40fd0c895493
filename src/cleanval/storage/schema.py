"""DuckDB schema definitions for catalog state and calculation results."""

SCHEMA_DDL = """
-- 1. KV_STORE: Current value of each state key (JSON)
CREATE TABLE IF NOT EXISTS kv_store (
    key VARCHAR PRIMARY KEY,
    value JSON NOT NULL,
    version INTEGER NOT NULL,
    updated_at TIMESTAMP NOT NULL
);

-- 2. STATE_HISTORY: Full-state snapshots for undo/redo
CREATE TABLE IF NOT EXISTS state_history (
    version INTEGER PRIMARY KEY,
    label VARCHAR,
    snapshot JSON NOT NULL,
    created_at TIMESTAMP NOT NULL
);

-- 3. HISTORY_CURSOR: Single row pointing at the current history version
CREATE TABLE IF NOT EXISTS history_cursor (
    id INTEGER PRIMARY KEY,
    version INTEGER NOT NULL
);

-- 4. CALCULATION_RUNS: Parent record for each archived calculation
CREATE TABLE IF NOT EXISTS calculation_runs (
    run_id INTEGER PRIMARY KEY,
    catalog_name VARCHAR NOT NULL,
    input_hash VARCHAR NOT NULL,
    train_count INTEGER NOT NULL,
    studies_required INTEGER NOT NULL,
    warning_count INTEGER DEFAULT 0,
    cleanval_version VARCHAR,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- 5. TRAIN_RESULTS: Per-train aggregates and limits
CREATE TABLE IF NOT EXISTS train_results (
    id INTEGER PRIMARY KEY,
    run_id INTEGER NOT NULL REFERENCES calculation_runs(run_id),
    train_key VARCHAR NOT NULL,
    train_number INTEGER NOT NULL,
    line VARCHAR NOT NULL,
    dosage_form VARCHAR NOT NULL,
    machine_ids JSON NOT NULL,
    product_ids JSON NOT NULL,
    essa DOUBLE,
    line_largest_essa DOUBLE,
    lowest_ltd DOUBLE,
    lowest_pde DOUBLE,
    lowest_ld50 DOUBLE,
    min_mbs_kg DOUBLE,
    min_bs_mdd_ratio DOUBLE,
    worst_rpn INTEGER,
    worst_product VARCHAR,
    worst_ingredient VARCHAR,
    safety_factor DOUBLE,
    final_maco DOUBLE,
    selected_method VARCHAR,
    maco_per_area DOUBLE,
    maco_per_swab DOUBLE,
    detergent_maco DOUBLE,
    used_sentinel BOOLEAN DEFAULT FALSE,
    selected_for_study BOOLEAN DEFAULT FALSE,
    warnings JSON
);

-- Sequences for auto-increment IDs
CREATE SEQUENCE IF NOT EXISTS seq_state_history_id START 1;
CREATE SEQUENCE IF NOT EXISTS seq_calculation_runs_id START 1;
"""

INDEX_DDL = """
-- Indexes for query performance
CREATE INDEX IF NOT EXISTS idx_train_results_run ON train_results(run_id);
CREATE INDEX IF NOT EXISTS idx_train_results_key ON train_results(train_key);
"""

VIEW_DDL = """
-- Latest run per catalog
CREATE OR REPLACE VIEW v_latest_results AS
SELECT r.catalog_name, r.created_at, t.*
FROM train_results t
JOIN calculation_runs r ON t.run_id = r.run_id
WHERE r.run_id IN (
    SELECT max(run_id) FROM calculation_runs GROUP BY catalog_name
);

-- Study count per run
CREATE OR REPLACE VIEW v_run_summary AS
SELECT r.run_id, r.catalog_name, r.created_at, r.train_count,
       r.studies_required, r.warning_count,
       min(t.final_maco) AS lowest_maco,
       sum(CASE WHEN t.used_sentinel THEN 1 ELSE 0 END) AS sentinel_trains
FROM calculation_runs r
LEFT JOIN train_results t ON t.run_id = r.run_id
GROUP BY r.run_id, r.catalog_name, r.created_at, r.train_count,
         r.studies_required, r.warning_count;
"""


def create_tables(conn) -> None:
    """Create all tables, sequences, indexes and views.

    Args:
        conn: DuckDB connection
    """
    conn.execute(SCHEMA_DDL)
    conn.execute(INDEX_DDL)
    conn.execute(VIEW_DDL)
