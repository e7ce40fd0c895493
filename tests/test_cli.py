"""CLI workflow tests for cleanval.

Tests the report command and the state store commands (import,
export-state, undo, redo, history, visibility).
"""

import json
from pathlib import Path

import pandas as pd
import pytest
import yaml

from cleanval import (
    export_state,
    history,
    import_catalog,
    redo,
    report,
    set_visibility,
    train_key,
    undo,
)
from cleanval.run import build_parser, main
from cleanval.storage import StoreError


class TestReportCommand:
    """Tests for the report command."""

    def test_report_by_name(self, config_dir: Path, capsys):
        """report() prints limits and the study total."""
        view, paths = report(catalog_name="sample_site", config_dir=str(config_dir))

        out = capsys.readouterr().out
        assert len(view.trains) == 6
        assert paths is None
        assert "--- MACO BY TRAIN ---" in out
        assert "Total studies required: 6" in out

    def test_report_export(self, config_dir: Path, tmp_path: Path):
        """export=True writes the five CSV reports."""
        _, paths = report(
            catalog_name="sample_site",
            config_dir=str(config_dir),
            export=True,
            output_dir=str(tmp_path),
        )

        assert set(paths) == {
            "trains",
            "maco_breakdown",
            "studies",
            "coverage",
            "machine_coverage",
        }
        trains = pd.read_csv(paths["trains"])
        assert len(trains) == 6

    def test_report_requires_source(self, config_dir: Path):
        with pytest.raises(ValueError):
            report(config_dir=str(config_dir))

    def test_report_from_empty_store(self, config_dir: Path, temp_db: Path):
        with pytest.raises(FileNotFoundError):
            report(config_dir=str(config_dir), from_store=True, db_path=str(temp_db))


class TestStoreCommands:
    """Tests for state store workflows."""

    def test_import_then_report_from_store(self, config_dir: Path, temp_db: Path):
        """Imported state gives the same trains as the config catalog."""
        version = import_catalog("sample_site", config_dir=str(config_dir), db_path=str(temp_db))
        view, _ = report(config_dir=str(config_dir), from_store=True, db_path=str(temp_db))

        assert version == 1
        assert len(view.trains) == 6
        assert view.coverage.total == 6

    def test_export_state_reimports(self, config_dir: Path, temp_db: Path, tmp_path: Path):
        """An exported state file can be imported again."""
        import_catalog("sample_site", config_dir=str(config_dir), db_path=str(temp_db))
        path = export_state(str(tmp_path / "export.json"), db_path=str(temp_db))

        data = json.loads(path.read_text())
        assert "export_date" in data
        assert len(data["products"]) == 6

        other_db = tmp_path / "other.duckdb"
        import_catalog(str(path), config_dir=str(config_dir), db_path=str(other_db))
        view, _ = report(config_dir=str(config_dir), from_store=True, db_path=str(other_db))
        assert len(view.trains) == 6

    def test_undo_redo(self, config_dir: Path, temp_db: Path, tmp_path: Path):
        import_catalog("sample_site", config_dir=str(config_dir), db_path=str(temp_db))
        path = tmp_path / "small.yaml"
        path.write_text(
            "products: []\n"
            "machines:\n"
            "  - {id: 1, name: Mixer, area: 10}\n"
        )
        import_catalog(str(path), config_dir=str(config_dir), db_path=str(temp_db))

        state = undo(db_path=str(temp_db))
        assert len(state["products"]) == 6

        state = redo(db_path=str(temp_db))
        assert state["products"] == []

        df = history(db_path=str(temp_db))
        assert df["current"].tolist() == [False, True]

    def test_safety_factor_override_survives_store(
        self, config_dir: Path, temp_db: Path, tmp_path: Path
    ):
        """A catalog override still governs the train after import and report."""
        with open(config_dir / "catalogs" / "sample_site.yaml") as f:
            data = yaml.safe_load(f)
        data["safety_factor_overrides"] = [
            {
                "line": "Solids Line A",
                "dosage_form": "Tablets",
                "machine_ids": [1, 2, 6, 11, 13, 16],
                "safety_factor": 500,
            }
        ]
        path = tmp_path / "override_site.yaml"
        path.write_text(yaml.safe_dump(data))

        import_catalog(str(path), config_dir=str(config_dir), db_path=str(temp_db))
        view, _ = report(config_dir=str(config_dir), from_store=True, db_path=str(temp_db))

        selection = view.safety_factors[train_key("Solids Line A", "Tablets", [1, 2, 6, 11, 13, 16])]
        assert selection.value == 500
        assert selection.overridden
        other = view.safety_factors[train_key("Solids Line A", "Tablets", [1, 3, 4, 12, 16])]
        assert not other.overridden

    def test_stage_order_stored_with_state(
        self, config_dir: Path, temp_db: Path, tmp_path: Path
    ):
        """A catalog stage order is kept in the store and reaches the computed view."""
        with open(config_dir / "catalogs" / "sample_site.yaml") as f:
            data = yaml.safe_load(f)
        data["stage_display_order"] = ["Milling", "Weighing"]
        path = tmp_path / "milling_first.yaml"
        path.write_text(yaml.safe_dump(data))

        import_catalog(str(path), config_dir=str(config_dir), db_path=str(temp_db))
        view, _ = report(config_dir=str(config_dir), from_store=True, db_path=str(temp_db))

        assert view.stage_display_order == ["Milling", "Weighing"]

    def test_undo_without_history(self, temp_db: Path):
        with pytest.raises(StoreError):
            undo(db_path=str(temp_db))

    def test_hidden_pde_applies_to_store_report(self, config_dir: Path, temp_db: Path):
        import_catalog("sample_site", config_dir=str(config_dir), db_path=str(temp_db))
        visibility = set_visibility(pde_hidden=True, db_path=str(temp_db))
        view, _ = report(config_dir=str(config_dir), from_store=True, db_path=str(temp_db))

        assert visibility.pde_hidden
        assert not visibility.ld50_hidden
        assert all(
            m.selected_method != "Health-Based Limit (PDE)" for m in view.maco.values()
        )


class TestArgumentParsing:
    """Tests for run.py argument handling."""

    def test_report_arguments(self):
        args = build_parser().parse_args(["report", "--catalog", "site", "--export", "--save"])
        assert args.catalog == "site"
        assert args.export
        assert args.save
        assert not args.from_store

    def test_sources_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["report", "--catalog", "a", "--from-store"])

    def test_visibility_flags(self):
        args = build_parser().parse_args(["visibility", "--hide-ld50"])
        assert args.ld50_hidden is True
        assert args.pde_hidden is None

    def test_main_report(self, config_dir: Path, capsys):
        main(["report", "--catalog", "sample_site", "--config", str(config_dir)])
        assert "Total studies required: 6" in capsys.readouterr().out

    def test_main_import_and_history(self, config_dir: Path, temp_db: Path, capsys):
        main(["import", "sample_site", "--config", str(config_dir), "--db-path", str(temp_db)])
        main(["history", "--db-path", str(temp_db)])

        out = capsys.readouterr().out
        assert "Imported sample_site" in out
        assert "import sample_site" in out
