"""CLI for database upgrades.

Usage:
    python -m dbupgrade upgrade --database app.db --scripts-dir sql
    python -m dbupgrade pending
    python -m dbupgrade status
    python -m dbupgrade downgrade 0003_add_index.sql
    python -m dbupgrade downgrade 0001_initial.sql --cascade
    python -m dbupgrade mark-executed --latest 0002_add_users.sql
    python -m dbupgrade check
    python -m dbupgrade create add_users --with-rollback
"""

import argparse
import logging
import re
import sys
from dataclasses import replace
from pathlib import Path
from textwrap import dedent
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import EngineSettings, get_settings, parse_variables
from .engine import ScriptExecutedEvent, UpgradeEngine, UpgradeError, UpgradeResult
from .engine.rollback import rollback_script_name
from .factory import build_sqlite_engine

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_UPGRADE_REQUIRED = 2

console = Console(highlight=False)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def settings_from_args(args: argparse.Namespace) -> EngineSettings:
    """Overlay command-line options on the environment settings."""
    settings = get_settings()
    overrides = {}

    if args.database:
        overrides["database"] = args.database
    if args.scripts_dir:
        overrides["scripts_dir"] = args.scripts_dir
    if args.journal_table:
        overrides["journal_table"] = args.journal_table
    if args.rollback_suffix:
        overrides["rollback_suffix"] = args.rollback_suffix
    if args.case_insensitive:
        overrides["case_insensitive"] = True
    if args.var:
        variables = dict(settings.variables)
        variables.update(parse_variables(args.var))
        overrides["variables"] = variables

    return replace(settings, **overrides)


def print_result(
    result: UpgradeResult, verb: str, marker: str, list_scripts: bool = True
) -> int:
    """Print an operation result and return the exit code."""
    if result.scripts and list_scripts:
        console.print(f"{verb} {len(result.scripts)} script(s):")
        for script in result.scripts:
            console.print(f"  {marker} {escape(script.name)}")
    elif result.scripts:
        console.print(f"{verb} {len(result.scripts)} script(s)")

    if not result.successful:
        if result.error_script:
            console.print(f"\n[red]Failed:[/red] {escape(result.error_script)}")
        else:
            console.print("\n[red]Failed[/red]")
        console.print(f"  Error: {escape(result.error_message or '')}")
        return EXIT_FAILURE

    return EXIT_OK


def cmd_upgrade(engine: UpgradeEngine, args: argparse.Namespace) -> int:
    """Apply pending scripts."""
    pending = engine.get_scripts_to_execute()
    if not pending:
        console.print("No pending scripts")
        return EXIT_OK

    console.print(f"Pending scripts: {len(pending)}")
    for script in pending:
        console.print(f"  - {escape(script.name)}")
    console.print()

    run = engine.iter_upgrade()
    for event in run:
        _print_progress(event)

    console.print()
    return print_result(run.result, "Executed", "+", list_scripts=False)


def _print_progress(event: ScriptExecutedEvent) -> None:
    console.print(f"  + {escape(event.script.name)} ({event.index + 1}/{event.total})")


def cmd_pending(engine: UpgradeEngine, args: argparse.Namespace) -> int:
    """List pending scripts."""
    pending = engine.get_scripts_to_execute()
    if not pending:
        console.print("No pending scripts")
        return EXIT_OK

    for script in pending:
        console.print(escape(script.name))
    return EXIT_OK


def cmd_status(engine: UpgradeEngine, args: argparse.Namespace) -> int:
    """Show executed, pending and missing scripts."""
    executed = engine.get_executed_scripts()
    pending = engine.get_scripts_to_execute()
    missing = engine.get_executed_but_not_discovered_scripts()

    applied_at = {}
    journal = engine.configuration.journal
    if hasattr(journal, "get_applied_at"):
        applied_at = journal.get_applied_at()

    if not executed and not pending:
        console.print("No scripts found")
        return EXIT_OK

    table = Table(title="Script status")
    table.add_column("Script")
    table.add_column("Status")
    table.add_column("Applied")

    for name in executed:
        status = "[yellow]missing[/yellow]" if name in missing else "[green]executed[/green]"
        table.add_row(escape(name), status, applied_at.get(name, ""))
    for script in pending:
        table.add_row(escape(script.name), "pending", "")

    console.print(table)
    console.print(
        f"Executed: {len(executed)} | Pending: {len(pending)} | Missing: {len(missing)}"
    )
    return EXIT_OK


def cmd_downgrade(engine: UpgradeEngine, args: argparse.Namespace, settings: EngineSettings) -> int:
    """Run rollback scripts."""
    suffix = args.suffix or settings.rollback_suffix
    result = engine.perform_downgrade(args.script, suffix, multiple_rollback=args.cascade)

    if result.successful and not result.scripts:
        console.print("No rollback scripts were run")

    return print_result(result, "Rolled back with", "-")


def cmd_mark_executed(engine: UpgradeEngine, args: argparse.Namespace) -> int:
    """Journal pending scripts without running them."""
    result = engine.mark_as_executed(args.latest)

    if result.successful and not result.scripts:
        console.print("No pending scripts")

    return print_result(result, "Marked", "*")


def cmd_check(engine: UpgradeEngine, args: argparse.Namespace) -> int:
    """Check connectivity and whether an upgrade is required."""
    connected, message = engine.try_connect()
    if not connected:
        console.print(f"[red]Cannot connect:[/red] {escape(message)}")
        return EXIT_FAILURE

    pending = engine.get_scripts_to_execute()
    if pending:
        console.print(f"Upgrade required: {len(pending)} pending script(s)")
        return EXIT_UPGRADE_REQUIRED

    console.print("Database is up to date")
    return EXIT_OK


def cmd_create(args: argparse.Namespace, settings: EngineSettings) -> int:
    """Create a new numbered script file."""
    scripts_dir = Path(settings.scripts_dir)
    scripts_dir.mkdir(parents=True, exist_ok=True)

    numbers = []
    for path in scripts_dir.glob("*.sql"):
        match = re.match(r"^(\d+)_", path.name)
        if match:
            numbers.append(int(match.group(1)))
    next_number = str(max(numbers, default=0) + 1).zfill(4)

    # Normalize name
    name = re.sub(r"[^a-z0-9_]", "", args.name.lower().replace("-", "_").replace(" ", "_"))
    if not name:
        console.print(f"Error: Invalid script name: {escape(args.name)}")
        return EXIT_FAILURE

    filename = f"{next_number}_{name}.sql"
    filepath = scripts_dir / filename
    if filepath.exists():
        console.print(f"Error: Script file already exists: {filepath}")
        return EXIT_FAILURE

    title = name.replace("_", " ")
    filepath.write_text(f"-- {next_number}: {title}\n\n")
    console.print(f"Created script: {filepath}")

    if args.with_rollback:
        rollback_path = scripts_dir / rollback_script_name(filename, settings.rollback_suffix)
        rollback_path.write_text(f"-- Rollback of {next_number}: {title}\n\n")
        console.print(f"Created rollback script: {rollback_path}")

    return EXIT_OK


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        prog="dbupgrade",
        description="Versioned schema-change scripts for SQLite databases",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=dedent("""
            Examples:
              # Apply all pending scripts
              dbupgrade upgrade --database app.db --scripts-dir sql

              # Roll back one script with its _rollback counterpart
              dbupgrade downgrade 0003_add_index.sql

              # Roll back everything executed after 0001_initial.sql
              dbupgrade downgrade 0001_initial.sql --cascade

              # Record scripts applied by hand, up to 0002_add_users.sql
              dbupgrade mark-executed --latest 0002_add_users.sql

              # Create a new script and its rollback
              dbupgrade create add_user_preferences --with-rollback
        """),
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--database", "-d", help="SQLite database file")
    parser.add_argument("--scripts-dir", "-s", help="Directory holding the scripts")
    parser.add_argument("--journal-table", help="Journal table name")
    parser.add_argument("--rollback-suffix", help="Suffix of rollback scripts")
    parser.add_argument(
        "--case-insensitive",
        action="store_true",
        help="Compare script names ignoring case",
    )
    parser.add_argument(
        "--var",
        action="append",
        metavar="NAME=VALUE",
        help="Variable substituted for $NAME$ in scripts (repeatable)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("upgrade", help="Apply pending scripts")
    subparsers.add_parser("pending", help="List pending scripts")
    subparsers.add_parser("status", help="Show script status")
    subparsers.add_parser("check", help="Check connectivity and pending scripts")

    downgrade_parser = subparsers.add_parser("downgrade", help="Run rollback scripts")
    downgrade_parser.add_argument("script", help="Executed script to roll back")
    downgrade_parser.add_argument("--suffix", help="Rollback suffix (overrides --rollback-suffix)")
    downgrade_parser.add_argument(
        "--cascade",
        action="store_true",
        help="Roll back every script executed after SCRIPT, newest first",
    )

    mark_parser = subparsers.add_parser(
        "mark-executed",
        help="Journal pending scripts without running them",
    )
    mark_parser.add_argument("--latest", help="Stop after marking this script")

    create_parser_cmd = subparsers.add_parser("create", help="Create a new script file")
    create_parser_cmd.add_argument("name", help="Script name (e.g., add_user_preferences)")
    create_parser_cmd.add_argument(
        "--with-rollback",
        action="store_true",
        help="Also create the rollback script",
    )

    return parser


def run(args: argparse.Namespace, engine: Optional[UpgradeEngine] = None) -> int:
    """Dispatch a parsed command."""
    try:
        settings = settings_from_args(args)
    except ValueError as e:
        console.print(f"Error: {escape(str(e))}")
        return EXIT_FAILURE

    if args.command == "create":
        return cmd_create(args, settings)

    try:
        engine = engine or build_sqlite_engine(settings)

        if args.command == "upgrade":
            return cmd_upgrade(engine, args)
        elif args.command == "pending":
            return cmd_pending(engine, args)
        elif args.command == "status":
            return cmd_status(engine, args)
        elif args.command == "downgrade":
            return cmd_downgrade(engine, args, settings)
        elif args.command == "mark-executed":
            return cmd_mark_executed(engine, args)
        elif args.command == "check":
            return cmd_check(engine, args)
        else:
            console.print(f"Unknown command: {args.command}")
            return EXIT_FAILURE
    except UpgradeError as e:
        console.print(f"Error: {escape(str(e))}")
        return EXIT_FAILURE


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    sys.exit(run(args))


if __name__ == "__main__":
    main()
