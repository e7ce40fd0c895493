"""Versioned key-value store for catalog state with undo/redo history.

Every state key (products, machines, scoring criteria, ...) is stored as
a JSON value with its own version counter. :meth:`StateStore.save_state`
also records a full snapshot in ``state_history``; undo and redo move a
cursor through those snapshots and restore the key values. Saving after
an undo discards the snapshots ahead of the cursor.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import duckdb
import pandas as pd

from cleanval.models import ToxicityVisibility
from cleanval.storage.schema import create_tables

logger = logging.getLogger(__name__)

PRODUCTS_KEY = "products"
MACHINES_KEY = "machines"
SCORING_KEY = "scoring_criteria"
DETERGENTS_KEY = "detergent_ingredients"
STAGE_ORDER_KEY = "stage_display_order"
SAFETY_OVERRIDES_KEY = "safety_factor_overrides"
PDE_HIDDEN_KEY = "pde_hidden"
LD50_HIDDEN_KEY = "ld50_hidden"

# Keys captured in undo/redo snapshots
STATE_KEYS = (
    PRODUCTS_KEY,
    MACHINES_KEY,
    SCORING_KEY,
    DETERGENTS_KEY,
    STAGE_ORDER_KEY,
    SAFETY_OVERRIDES_KEY,
)


class StoreError(RuntimeError):
    """Raised on invalid store operations such as undo with no history."""


class StateStore:
    """DuckDB-backed state store."""

    def __init__(self, db_path: Path | str):
        self.db_path = Path(db_path)
        self.conn = duckdb.connect(str(self.db_path))
        create_tables(self.conn)

    # --- Key-value access ---

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for key, or default when absent."""
        row = self.conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", [key]
        ).fetchone()
        if row is None:
            return default
        return json.loads(row[0])

    def version(self, key: str) -> int:
        """Current version of key (0 if never written)."""
        row = self.conn.execute(
            "SELECT version FROM kv_store WHERE key = ?", [key]
        ).fetchone()
        return row[0] if row else 0

    def keys(self) -> List[str]:
        rows = self.conn.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        return [r[0] for r in rows]

    def set(self, key: str, value: Any) -> int:
        """Write a JSON-serializable value and return its new version."""
        new_version = self.version(key) + 1
        self.conn.execute(
            """
            INSERT INTO kv_store (key, value, version, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT (key) DO UPDATE SET
                value = excluded.value,
                version = excluded.version,
                updated_at = excluded.updated_at
            """,
            [key, json.dumps(value), new_version, datetime.now()],
        )
        return new_version

    def visibility(self) -> ToxicityVisibility:
        """Toxicity preference flags."""
        return ToxicityVisibility(
            pde_hidden=bool(self.get(PDE_HIDDEN_KEY, False)),
            ld50_hidden=bool(self.get(LD50_HIDDEN_KEY, False)),
        )

    def set_visibility(self, visibility: ToxicityVisibility) -> None:
        self.set(PDE_HIDDEN_KEY, visibility.pde_hidden)
        self.set(LD50_HIDDEN_KEY, visibility.ld50_hidden)

    # --- Full state and history ---

    def load_state(self) -> Dict[str, Any]:
        """Current values of all snapshot keys that have been written."""
        state = {}
        for key in STATE_KEYS:
            value = self.get(key)
            if value is not None:
                state[key] = value
        return state

    def save_state(self, state: Dict[str, Any], label: str = "") -> int:
        """Write the given keys and record a history snapshot.

        Keys not in ``state`` keep their current value and are included in
        the snapshot as they are.

        Returns:
            History version of the new snapshot
        """
        unknown = sorted(set(state) - set(STATE_KEYS))
        if unknown:
            raise StoreError(f"unknown state keys: {', '.join(unknown)}")
        for key, value in state.items():
            self.set(key, value)
        return self._push_history(self.load_state(), label)

    def _push_history(self, snapshot: Dict[str, Any], label: str) -> int:
        cursor = self._cursor()
        if cursor is not None:
            # Branching after an undo drops the redo tail
            self.conn.execute("DELETE FROM state_history WHERE version > ?", [cursor])
        version = self.conn.execute(
            "SELECT nextval('seq_state_history_id')"
        ).fetchone()[0]
        self.conn.execute(
            "INSERT INTO state_history (version, label, snapshot, created_at) VALUES (?, ?, ?, ?)",
            [version, label, json.dumps(snapshot), datetime.now()],
        )
        self._set_cursor(version)
        logger.info("Saved state version %d (%s)", version, label or "no label")
        return version

    def can_undo(self) -> bool:
        return self._neighbour(older=True) is not None

    def can_redo(self) -> bool:
        return self._neighbour(older=False) is not None

    def undo(self) -> Dict[str, Any]:
        """Restore the previous snapshot.

        Raises:
            StoreError: if there is nothing to undo
        """
        target = self._neighbour(older=True)
        if target is None:
            raise StoreError("nothing to undo")
        return self._restore(target)

    def redo(self) -> Dict[str, Any]:
        """Re-apply the next snapshot.

        Raises:
            StoreError: if there is nothing to redo
        """
        target = self._neighbour(older=False)
        if target is None:
            raise StoreError("nothing to redo")
        return self._restore(target)

    def history(self) -> pd.DataFrame:
        """History entries with a flag marking the current one."""
        df = self.conn.execute(
            "SELECT version, label, created_at FROM state_history ORDER BY version"
        ).df()
        df["current"] = df["version"] == self._cursor()
        return df

    def _restore(self, version: int) -> Dict[str, Any]:
        row = self.conn.execute(
            "SELECT snapshot FROM state_history WHERE version = ?", [version]
        ).fetchone()
        snapshot = json.loads(row[0])
        for key, value in snapshot.items():
            self.set(key, value)
        self._set_cursor(version)
        logger.info("Restored state version %d", version)
        return snapshot

    def _neighbour(self, older: bool) -> Optional[int]:
        cursor = self._cursor()
        if cursor is None:
            return None
        if older:
            query = "SELECT max(version) FROM state_history WHERE version < ?"
        else:
            query = "SELECT min(version) FROM state_history WHERE version > ?"
        return self.conn.execute(query, [cursor]).fetchone()[0]

    def _cursor(self) -> Optional[int]:
        row = self.conn.execute(
            "SELECT version FROM history_cursor WHERE id = 1"
        ).fetchone()
        return row[0] if row else None

    def _set_cursor(self, version: int) -> None:
        self.conn.execute(
            """
            INSERT INTO history_cursor (id, version) VALUES (1, ?)
            ON CONFLICT (id) DO UPDATE SET version = excluded.version
            """,
            [version],
        )

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
