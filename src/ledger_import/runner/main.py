"""
CLI main entry point.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from ..config import Config, create_default_config, load_config
from ..errors import StructuralError
from ..reference import ReferenceDataError, load_reference_data
from ..schemas.layout import RecordKind
from ..services import ImportSession, ImportState, ReviewResult
from ..state_store import StateStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _add_file_arguments(sub: argparse.ArgumentParser) -> None:
    sub.add_argument("file", type=Path, help="Spreadsheet file (.xlsx, .xlsm, .csv, .tsv)")
    sub.add_argument(
        "--kind",
        required=True,
        choices=[k.value for k in RecordKind],
        help="Target record kind",
    )
    sub.add_argument(
        "--sheet",
        type=str,
        default=None,
        help="Worksheet name (default: first sheet)",
    )
    sub.add_argument(
        "--map",
        dest="mappings",
        action="append",
        default=[],
        metavar="FIELD=COLUMN",
        help="Manual column mapping, used when auto mapping fails (repeatable)",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="ledger-import",
        description="Import ledger entries and fiscal receipts from spreadsheet exports",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument("path", type=Path, help="Where to write the config file")

    # preview command
    preview_parser = subparsers.add_parser(
        "preview", help="Parse a spreadsheet and show the review without committing"
    )
    _add_file_arguments(preview_parser)
    preview_parser.add_argument(
        "--show-valid",
        action="store_true",
        help="Also list valid rows (default: only invalid and duplicate rows)",
    )

    # import command
    import_parser = subparsers.add_parser("import", help="Parse and commit a spreadsheet")
    _add_file_arguments(import_parser)
    import_parser.add_argument(
        "--no-skip-existing",
        action="store_true",
        help="Commit rows whose fingerprint already exists (overwrite)",
    )
    import_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be committed without writing anything",
    )

    # status command
    subparsers.add_parser("status", help="Show store statistics and recent imports")

    return parser


def parse_mapping_args(values: list[str]) -> dict[str, str]:
    """Parse repeated FIELD=COLUMN arguments.

    Raises:
        ValueError: If an argument has no '='
    """
    mapping: dict[str, str] = {}
    for value in values:
        field_name, sep, column = value.partition("=")
        if not sep or not field_name.strip():
            raise ValueError(f"Invalid --map value '{value}' (expected FIELD=COLUMN)")
        mapping[field_name.strip()] = column.strip()
    return mapping


def _open_session(config: Config, kind: str, skip_existing: Optional[bool] = None) -> ImportSession:
    reference = load_reference_data(config.reference_data_path)
    store = StateStore(config.state_db_path)
    session = ImportSession(store, reference, config)
    if skip_existing is not None:
        session.set_skip_existing(skip_existing)
    session.select_kind(kind)
    return session


def _run_until_review(
    session: ImportSession, file: Path, sheet: Optional[str], mappings: list[str]
) -> Optional[ReviewResult]:
    """Load the file and apply a manual mapping if needed; None if unmapped."""
    session.load_file(file, sheet=sheet)

    if session.state == ImportState.MAPPING:
        if not mappings:
            print("❌ Could not map columns automatically.")
            print(f"   Columns found: {', '.join(session.layout.columns if session.layout else ())}")
            print("   Suggested mapping:")
            for field_name, column in session.mapping_draft.items():
                print(f"     --map {field_name.value}={column or '?'}")
            return None
        session.apply_mapping(parse_mapping_args(mappings))

    return session.review


def _print_review(review: ReviewResult, show_valid: bool = False) -> None:
    counts = review.counts()
    print(f"\n📋 Review ({review.kind.value}, {review.layout.mode.value} layout)")
    print("=" * 60)
    mapping_source = "auto" if review.mapping.auto_detected else "manual"
    print(f"  Mapping ({mapping_source}):")
    for logical_field, column in review.mapping.columns.items():
        print(f"    {logical_field.value:<15} <- {column}")
    print()

    for draft in review.drafts:
        s = draft.summary
        if not draft.is_valid:
            print(f"  ❌ row {draft.row_number}: {s.date or '?'} {s.label} [{s.category}] {s.amount}")
            for error in draft.errors:
                print(f"       - {error}")
        elif review.is_duplicate(draft):
            print(f"  ⏭ row {draft.row_number}: {s.date} {s.label} {s.amount} (duplicate)")
        elif show_valid:
            print(f"  ✓ row {draft.row_number}: {s.date} {s.label} [{s.category}] {s.amount} {s.detail}".rstrip())
            if s.taxes:
                print(f"       {s.taxes}")

    print()
    print(f"  Rows:        {counts['total']}")
    print(f"  Valid:       {counts['valid']}")
    print(f"  Invalid:     {counts['invalid']}")
    print(f"  Duplicates:  {counts['duplicates']}")
    print(f"  To commit:   {counts['to_commit']}")


def cmd_init_config(path: Path) -> int:
    """Write a default configuration file."""
    if path.exists():
        print(f"❌ {path} already exists")
        return 1
    create_default_config(path)
    print(f"✓ Wrote default config to {path}")
    return 0


def cmd_preview(
    config: Config,
    file: Path,
    kind: str,
    sheet: Optional[str] = None,
    mappings: Optional[list[str]] = None,
    show_valid: bool = False,
) -> int:
    """Parse a file and print the review."""
    print(f"🔍 Previewing {file} as {kind}...")
    try:
        session = _open_session(config, kind)
        review = _run_until_review(session, file, sheet, mappings or [])
    except (StructuralError, ReferenceDataError, ValueError) as e:
        print(f"❌ {e}")
        return 1

    if review is None:
        return 1

    _print_review(review, show_valid=show_valid)
    session.discard()
    return 0


def cmd_import(
    config: Config,
    file: Path,
    kind: str,
    sheet: Optional[str] = None,
    mappings: Optional[list[str]] = None,
    skip_existing: bool = True,
    dry_run: bool = False,
) -> int:
    """Parse a file and commit the valid rows."""
    print(f"📤 Importing {file} as {kind}...")
    if dry_run:
        print("  ℹ️  DRY RUN mode - nothing will be written")

    try:
        session = _open_session(config, kind, skip_existing=skip_existing)
        review = _run_until_review(session, file, sheet, mappings or [])
    except (StructuralError, ReferenceDataError, ValueError) as e:
        print(f"❌ {e}")
        return 1

    if review is None:
        return 1

    _print_review(review)

    if dry_run:
        session.discard()
        print(f"\n✓ [DRY RUN] Would commit {len(review.to_commit)} record(s)")
        return 0

    result = session.commit()

    for failure in result.failures:
        print(f"  ❌ row {failure.row_number}: {failure.error}")

    print(
        f"\n✓ Committed: {len(result.committed)} "
        f"(new: {result.created}, updated: {result.updated}), "
        f"Linked entries: {len(result.linked_entries)}, "
        f"Skipped: {result.skipped_invalid} invalid / {result.skipped_duplicates} duplicate, "
        f"Failed: {len(result.failures)}"
    )
    return 0 if result.success else 1


def cmd_status(config: Config) -> int:
    """Show store status."""
    store = StateStore(config.state_db_path)
    stats = store.get_stats()

    print("\n📊 Import Status")
    print("=" * 40)
    print(f"  Ledger entries:         {stats['ledger_entries']}")
    print(f"    linked to receipts:   {stats['linked_ledger_entries']}")
    print(f"  Fiscal receipts:        {stats['fiscal_receipts']}")
    print(f"  Import runs:            {stats['import_runs']}")

    runs = store.get_import_runs(limit=5)
    if runs:
        print("\n  Recent imports:")
        for run in runs:
            committed = run.totals.get("committed", 0)
            failed = run.totals.get("failed", 0)
            source = "auto" if run.auto_detected else "manual"
            print(
                f"    [{run.id}] {run.created_at} {run.kind:<10} "
                f"committed={committed} failed={failed} mapping={source}"
            )
    print()

    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.path)

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    problems = config.validate()
    if problems:
        for problem in problems:
            print(f"❌ Config: {problem}")
        return 1

    # Route to command
    if parsed.command == "preview":
        return cmd_preview(
            config,
            parsed.file,
            parsed.kind,
            sheet=parsed.sheet,
            mappings=parsed.mappings,
            show_valid=parsed.show_valid,
        )
    elif parsed.command == "import":
        return cmd_import(
            config,
            parsed.file,
            parsed.kind,
            sheet=parsed.sheet,
            mappings=parsed.mappings,
            skip_existing=not parsed.no_skip_existing,
            dry_run=parsed.dry_run,
        )
    elif parsed.command == "status":
        return cmd_status(config)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
