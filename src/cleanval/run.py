"""Entry point for the cleaning validation command line."""

import argparse
import logging

from cleanval.cli.report import report as report_func
from cleanval.cli.store import (
    export_state as export_state_func,
    history as history_func,
    import_catalog as import_func,
    redo as redo_func,
    set_visibility as set_visibility_func,
    undo as undo_func,
)


def _report_command(args: argparse.Namespace) -> None:
    """Handle 'report' subcommand."""
    report_func(
        catalog_name=args.catalog,
        catalog_file=args.file,
        config_dir=args.config,
        from_store=args.from_store,
        db_path=args.db_path,
        export=args.export,
        output_dir=args.output,
        save_to_db=args.save,
    )


def _import_command(args: argparse.Namespace) -> None:
    """Handle 'import' subcommand."""
    import_func(
        source=args.source,
        config_dir=args.config,
        db_path=args.db_path,
        label=args.label,
    )


def _export_state_command(args: argparse.Namespace) -> None:
    """Handle 'export-state' subcommand."""
    export_state_func(output_path=args.output, db_path=args.db_path)


def _undo_command(args: argparse.Namespace) -> None:
    """Handle 'undo' subcommand."""
    undo_func(db_path=args.db_path)


def _redo_command(args: argparse.Namespace) -> None:
    """Handle 'redo' subcommand."""
    redo_func(db_path=args.db_path)


def _history_command(args: argparse.Namespace) -> None:
    """Handle 'history' subcommand."""
    history_func(db_path=args.db_path)


def _visibility_command(args: argparse.Namespace) -> None:
    """Handle 'visibility' subcommand."""
    set_visibility_func(
        pde_hidden=args.pde_hidden,
        ld50_hidden=args.ld50_hidden,
        db_path=args.db_path,
    )


def _add_db_path(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--db-path",
        default=None,
        help="Custom path for DuckDB file (default: ./cleanval.duckdb)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Cleaning validation: trains, MACO limits and study coverage",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  report        Compute trains, MACO limits and required studies
  import        Validate a catalog and save it to the state store
  export-state  Write the stored state as a JSON export
  undo / redo   Step through state history
  history       List state history
  visibility    Hide or show PDE / LD50 in calculations

Examples:
  python -m cleanval report --catalog sample_site
  python -m cleanval report --catalog sample_site --export --save
  python -m cleanval import sample_site
  python -m cleanval report --from-store
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show data-integrity warnings as they are logged",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # === 'report' subcommand ===
    report_parser = subparsers.add_parser(
        "report",
        help="Compute trains, MACO limits and required studies",
        description="Compute trains, MACO limits and required studies for a catalog.",
    )
    source = report_parser.add_mutually_exclusive_group()
    source.add_argument(
        "--catalog",
        default=None,
        help="Catalog config name in config/catalogs (default: sample_site)",
    )
    source.add_argument("--file", default=None, help="Path to a YAML or JSON catalog file")
    source.add_argument(
        "--from-store",
        action="store_true",
        help="Use the catalog saved in the DuckDB state store",
    )
    report_parser.add_argument(
        "--config",
        default="config",
        help="Config directory path (default: config)",
    )
    report_parser.add_argument(
        "--export",
        action="store_true",
        help="Export reports to CSV files",
    )
    report_parser.add_argument(
        "--output",
        default="output",
        help="Output directory for CSV export (default: output)",
    )
    report_parser.add_argument(
        "--save",
        action="store_true",
        help="Archive results to the DuckDB database",
    )
    _add_db_path(report_parser)
    report_parser.set_defaults(func=_report_command)

    # === 'import' subcommand ===
    import_parser = subparsers.add_parser(
        "import",
        help="Save a catalog to the state store",
        description="Validate a catalog and save it as the current state.",
    )
    import_parser.add_argument(
        "source",
        help="Catalog config name, or path to a YAML/JSON catalog file",
    )
    import_parser.add_argument(
        "--config",
        default="config",
        help="Config directory path (default: config)",
    )
    import_parser.add_argument("--label", default=None, help="History label")
    _add_db_path(import_parser)
    import_parser.set_defaults(func=_import_command)

    # === 'export-state' subcommand ===
    export_parser = subparsers.add_parser(
        "export-state",
        help="Write stored state to JSON",
        description="Write the current stored state as a JSON data export.",
    )
    export_parser.add_argument(
        "--output",
        default="cleanval_export.json",
        help="Output file (default: cleanval_export.json)",
    )
    _add_db_path(export_parser)
    export_parser.set_defaults(func=_export_state_command)

    # === 'undo' / 'redo' / 'history' subcommands ===
    for name, handler, text in (
        ("undo", _undo_command, "Restore the previous state"),
        ("redo", _redo_command, "Re-apply the next state"),
        ("history", _history_command, "List state history"),
    ):
        sub = subparsers.add_parser(name, help=text, description=f"{text}.")
        _add_db_path(sub)
        sub.set_defaults(func=handler)

    # === 'visibility' subcommand ===
    visibility_parser = subparsers.add_parser(
        "visibility",
        help="Hide or show PDE / LD50",
        description="Hide or show PDE and LD50 values in risk and limit calculations.",
    )
    visibility_parser.add_argument(
        "--hide-pde", dest="pde_hidden", action="store_const", const=True, default=None
    )
    visibility_parser.add_argument(
        "--show-pde", dest="pde_hidden", action="store_const", const=False
    )
    visibility_parser.add_argument(
        "--hide-ld50", dest="ld50_hidden", action="store_const", const=True, default=None
    )
    visibility_parser.add_argument(
        "--show-ld50", dest="ld50_hidden", action="store_const", const=False
    )
    _add_db_path(visibility_parser)
    visibility_parser.set_defaults(func=_visibility_command)

    return parser


def main(argv=None):
    """CLI entry point with subcommands."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING if args.verbose else logging.ERROR,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # Handle no subcommand (default to report on the sample catalog)
    if args.command is None:
        default_args = argparse.Namespace(
            catalog="sample_site",
            file=None,
            config="config",
            from_store=False,
            db_path=None,
            export=False,
            output="output",
            save=False,
        )
        _report_command(default_args)
        return

    if args.command == "report" and not (args.catalog or args.file or args.from_store):
        args.catalog = "sample_site"
    args.func(args)


if __name__ == "__main__":
    main()
