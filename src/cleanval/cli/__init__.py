"""CLI commands for cleanval."""

from cleanval.cli.report import report
from cleanval.cli.store import (
    export_state,
    history,
    import_catalog,
    redo,
    set_visibility,
    undo,
)

__all__ = [
    "report",
    "import_catalog",
    "export_state",
    "undo",
    "redo",
    "history",
    "set_visibility",
]
