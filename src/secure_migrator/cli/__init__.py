"""Command-line interface for the secure migration pipeline.

Reads sources, targets and settings from ``migrator.toml`` and keeps project
records in a JSON file (``storage.projects_file``).  Projects are addressed
by code and created on first ``extract``.

Usage:
    secure-migrator test-connection crm
    secure-migrator extract crm-2024 --source crm
    secure-migrator analyze crm-2024
    secure-migrator obfuscate crm-2024 rules.json
    secure-migrator backup create crm-2024
    secure-migrator backup list crm-2024
    secure-migrator backup download crm-2024 <backup-id> --output backup.json
    secure-migrator backup delete crm-2024 <backup-id>
    secure-migrator migrate crm-2024 --source crm --target archive
    secure-migrator status crm-2024

Commands:
    test-connection - Check that a configured source answers
    extract         - Extract the source schema into the project
    analyze         - Score every column for sensitive data
    obfuscate       - Save the obfuscation rules from a JSON file
    backup          - Create, list, download or delete encrypted backups
    migrate         - Copy the data to the target with obfuscation applied
    status          - Show project state and last migration status
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from secure_migrator.analysis.models import AnalysisSummary, SensitivityLevel
from secure_migrator.backup.store import FileArtifactStore
from secure_migrator.config.loader import load_config
from secure_migrator.config.models import MigratorConfig
from secure_migrator.errors import MigratorError, ProjectNotFoundError
from secure_migrator.migration.status import MigrationState, MigrationStatus
from secure_migrator.pipeline import MigrationPipeline
from secure_migrator.project.events import LoggingEventLog
from secure_migrator.project.models import Project
from secure_migrator.project.store import JsonFileProjectStore

console = Console()

POLL_INTERVAL = 0.5

LEVEL_STYLES = {
    SensitivityLevel.CRITICAL: "bold red",
    SensitivityLevel.HIGH: "red",
    SensitivityLevel.MEDIUM: "yellow",
    SensitivityLevel.LOW: "cyan",
    SensitivityLevel.NONE: "dim",
}


# ============================================================================
# Helpers
# ============================================================================


def _setup_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load(args: argparse.Namespace) -> MigratorConfig:
    config_path = Path(args.config) if args.config else None
    config = load_config(config_path)
    if config.settings.debug_mode:
        logging.getLogger().setLevel(logging.DEBUG)
    return config


def _build(config: MigratorConfig) -> tuple[MigrationPipeline, JsonFileProjectStore]:
    store = JsonFileProjectStore(Path(config.storage.projects_file))
    pipeline = MigrationPipeline(
        store,
        LoggingEventLog(),
        FileArtifactStore(Path(config.storage.backups_dir)),
        settings=config.settings,
    )
    return pipeline, store


async def _project(store: JsonFileProjectStore, code: str) -> Project:
    project = await store.find_by_code(code)
    if project is None:
        raise ProjectNotFoundError(
            f"Project '{code}' not found. Run 'secure-migrator extract {code} "
            f"--source <name>' first."
        )
    return project


def _source(config: MigratorConfig, name: str):
    if name not in config.sources:
        available = ", ".join(sorted(config.sources)) or "none"
        raise MigratorError(f"Source '{name}' not found in config (available: {available})")
    return config.sources[name]


def _target(config: MigratorConfig, name: str):
    if name not in config.targets:
        available = ", ".join(sorted(config.targets)) or "none"
        raise MigratorError(f"Target '{name}' not found in config (available: {available})")
    return config.targets[name]


def _print_summary(summary: AnalysisSummary, show_all: bool) -> None:
    table = Table(title="Sensitivity Analysis", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Column")
    table.add_column("Type")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    table.add_column("Recommendation")

    for field in summary.fields:
        if not show_all and field.level == SensitivityLevel.NONE:
            continue
        style = LEVEL_STYLES[field.level]
        table.add_row(
            field.table,
            field.column,
            field.data_type,
            str(field.score),
            f"[{style}]{field.level.value}[/{style}]",
            field.recommendation,
        )

    console.print(table)
    console.print(
        f"\n[bold red]{summary.critical_count}[/bold red] critical, "
        f"[red]{summary.moderate_count}[/red] moderate, "
        f"[yellow]{summary.low_count}[/yellow] low, "
        f"[green]{summary.safe_count}[/green] safe"
    )


def _print_status(status: MigrationStatus) -> None:
    progress = status.progress
    console.print(f"  Migration: [bold]{status.state.value}[/bold]")
    console.print(
        f"  Tables: {progress.completed_tables}/{progress.total_tables}  "
        f"Records: {progress.processed_records}/{progress.total_records}  "
        f"({progress.percentage}%)"
    )
    for error in status.errors:
        console.print(f"  [red]x {error.table}: {error.message}[/red]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_test_connection(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, _ = _build(config)
    source = _source(config, args.source)

    console.print(f"Connecting to [cyan]{source.display_url()}[/cyan]...", style="dim")
    await pipeline.test_source_connection(source)
    console.print("[bold green]v[/bold green] Connection successful")
    return 0


async def _async_extract(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    source = _source(config, args.source)

    project = await store.get_or_create(args.project)
    await pipeline.configure_source(project.id, source)
    snapshot = await pipeline.extract_schema(project.id)

    table = Table(title=f"Schema of {source.database}", show_header=True, header_style="bold")
    table.add_column("Table")
    table.add_column("Columns", justify="right")
    table.add_column("Primary key")
    table.add_column("Sampled rows", justify="right")
    for name, desc in snapshot.tables.items():
        table.add_row(
            name,
            str(len(desc.columns)),
            ", ".join(desc.primary_key) or "-",
            str(len(desc.sample_rows)),
        )
    console.print(table)
    console.print(f"\n{len(snapshot.relations)} relation(s) found")
    return 0


async def _async_analyze(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    summary = await pipeline.run_analysis(project.id)
    _print_summary(summary, show_all=args.all)
    return 0


async def _async_obfuscate(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    rules_path = Path(args.rules_file)
    try:
        raw = json.loads(rules_path.read_text())
    except FileNotFoundError:
        console.print(f"[red]Error: rules file not found: {rules_path}[/red]")
        return 1
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: invalid JSON in {rules_path}: {e}[/red]")
        return 1

    saved = await pipeline.save_obfuscation_config(project.id, raw)
    columns = sum(len(rules) for rules in saved.values())
    console.print(
        f"[bold green]v[/bold green] Saved {columns} rule(s) across {len(saved)} table(s)"
    )
    return 0


async def _async_backup_create(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    password = args.password or console.input("Backup password: ", password=True)
    descriptor = await pipeline.create_backup(project.id, password)
    console.print(f"[bold green]v[/bold green] Backup created: [cyan]{descriptor.id}[/cyan]")
    console.print(
        f"  {len(descriptor.tables)} table(s), {descriptor.record_count} record(s), "
        f"{descriptor.size_bytes} bytes"
    )
    return 0


async def _async_backup_list(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    backups = await pipeline.list_backups(project.id)
    if not backups:
        console.print("[yellow]No backups.[/yellow]")
        return 0

    table = Table(title=f"Backups of {project.code}", show_header=True, header_style="bold")
    table.add_column("ID")
    table.add_column("Created")
    table.add_column("Tables", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Size", justify="right")
    for backup in backups:
        table.add_row(
            backup.id,
            backup.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            str(len(backup.tables)),
            str(backup.record_count),
            f"{backup.size_bytes} B",
        )
    console.print(table)
    return 0


async def _async_backup_download(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    data = await pipeline.download_backup(project.id, args.backup_id)
    output = Path(args.output or f"backup-{args.backup_id}.json")
    output.write_bytes(data)
    console.print(f"[bold green]v[/bold green] Backup written to {output}")
    return 0


async def _async_backup_delete(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    await pipeline.delete_backup(project.id, args.backup_id)
    console.print(f"[bold green]v[/bold green] Backup {args.backup_id} deleted")
    return 0


async def _async_migrate(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    # Stored projects keep the source password redacted
    await pipeline.configure_source(project.id, _source(config, args.source))
    await pipeline.configure_target(project.id, _target(config, args.target))

    status = await pipeline.start_migration(project.id)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as bar:
            task = bar.add_task("Migrating", total=100)
            while status.state == MigrationState.IN_PROGRESS:
                await asyncio.sleep(POLL_INTERVAL)
                status = await pipeline.get_migration_status(project.id)
                current = status.progress.current_table or ""
                bar.update(
                    task,
                    completed=status.progress.percentage,
                    description=f"Migrating {current}".strip(),
                )
    except asyncio.CancelledError:
        console.print("\n[yellow]Interrupted, cancelling migration...[/yellow]")
        status = await pipeline.cancel_migration(project.id)
        await pipeline.wait_for_migration(project.id)
        _print_status(status)
        return 1

    await pipeline.wait_for_migration(project.id)
    status = await pipeline.get_migration_status(project.id)

    console.print()
    if status.state == MigrationState.COMPLETED:
        console.print("[bold green]v[/bold green] Migration completed")
    else:
        console.print("[bold red]x[/bold red] Migration failed")
    _print_status(status)
    return 0 if status.state == MigrationState.COMPLETED else 1


async def _async_status(args: argparse.Namespace) -> int:
    config = _load(args)
    pipeline, store = _build(config)
    project = await _project(store, args.project)

    console.print(f"Project: [bold cyan]{project.code}[/bold cyan] ({project.id})")
    console.print(f"  State: [bold]{project.state.value}[/bold]")
    if project.source_connection:
        console.print(f"  Source: {project.source_connection.display_url()}")
    if project.snapshot:
        console.print(f"  Tables: {len(project.snapshot.tables)}")
    if project.latest_backup:
        console.print(f"  Latest backup: {project.latest_backup.id}")
    if project.target_connection:
        console.print(f"  Target: {project.target_connection.database_name}")

    status = await pipeline.get_migration_status(project.id)
    _print_status(status)
    return 0


# ============================================================================
# Sync wrappers
# ============================================================================


def _run(coro_fn, args: argparse.Namespace) -> int:
    """Run an async command, mapping pipeline errors to exit code 1."""
    try:
        return asyncio.run(coro_fn(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except MigratorError as e:
        console.print(f"[bold red]x[/bold red] {e.reason}")
        return 1
    except KeyboardInterrupt:
        return 130


def cmd_test_connection(args: argparse.Namespace) -> int:
    return _run(_async_test_connection, args)


def cmd_extract(args: argparse.Namespace) -> int:
    return _run(_async_extract, args)


def cmd_analyze(args: argparse.Namespace) -> int:
    return _run(_async_analyze, args)


def cmd_obfuscate(args: argparse.Namespace) -> int:
    return _run(_async_obfuscate, args)


def cmd_backup_create(args: argparse.Namespace) -> int:
    return _run(_async_backup_create, args)


def cmd_backup_list(args: argparse.Namespace) -> int:
    return _run(_async_backup_list, args)


def cmd_backup_download(args: argparse.Namespace) -> int:
    return _run(_async_backup_download, args)


def cmd_backup_delete(args: argparse.Namespace) -> int:
    return _run(_async_backup_delete, args)


def cmd_migrate(args: argparse.Namespace) -> int:
    return _run(_async_migrate, args)


def cmd_status(args: argparse.Namespace) -> int:
    return _run(_async_status, args)


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="secure-migrator",
        description="Migrate relational data to a document store with sensitive data obfuscated",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="Path to migrator.toml (default: ./migrator.toml)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # test-connection command
    p_test = subparsers.add_parser("test-connection", help="Check that a source answers")
    p_test.add_argument("source", help="Source name from migrator.toml")
    p_test.set_defaults(func=cmd_test_connection)

    # extract command
    p_extract = subparsers.add_parser("extract", help="Extract the source schema")
    p_extract.add_argument("project", help="Project code")
    p_extract.add_argument("--source", "-s", required=True, help="Source name from migrator.toml")
    p_extract.set_defaults(func=cmd_extract)

    # analyze command
    p_analyze = subparsers.add_parser("analyze", help="Score columns for sensitive data")
    p_analyze.add_argument("project", help="Project code")
    p_analyze.add_argument("--all", action="store_true", help="Also list columns with no action")
    p_analyze.set_defaults(func=cmd_analyze)

    # obfuscate command
    p_obfuscate = subparsers.add_parser("obfuscate", help="Save obfuscation rules")
    p_obfuscate.add_argument("project", help="Project code")
    p_obfuscate.add_argument(
        "rules_file",
        help='JSON file: {"table": {"column": {"method": "mask", "parameters": {...}}}}',
    )
    p_obfuscate.set_defaults(func=cmd_obfuscate)

    # backup command group
    p_backup = subparsers.add_parser("backup", help="Manage encrypted backups")
    backup_sub = p_backup.add_subparsers(dest="backup_command", required=True)

    p_create = backup_sub.add_parser("create", help="Create an encrypted backup")
    p_create.add_argument("project", help="Project code")
    p_create.add_argument("--password", default=None, help="Backup password (prompted when omitted)")
    p_create.set_defaults(func=cmd_backup_create)

    p_list = backup_sub.add_parser("list", help="List backups")
    p_list.add_argument("project", help="Project code")
    p_list.set_defaults(func=cmd_backup_list)

    p_download = backup_sub.add_parser("download", help="Export a backup envelope")
    p_download.add_argument("project", help="Project code")
    p_download.add_argument("backup_id", help="Backup ID")
    p_download.add_argument("--output", "-o", default=None, help="Output file")
    p_download.set_defaults(func=cmd_backup_download)

    p_delete = backup_sub.add_parser("delete", help="Delete a backup")
    p_delete.add_argument("project", help="Project code")
    p_delete.add_argument("backup_id", help="Backup ID")
    p_delete.set_defaults(func=cmd_backup_delete)

    # migrate command
    p_migrate = subparsers.add_parser("migrate", help="Run the migration (Ctrl-C cancels)")
    p_migrate.add_argument("project", help="Project code")
    p_migrate.add_argument("--source", "-s", required=True, help="Source name from migrator.toml")
    p_migrate.add_argument("--target", "-t", required=True, help="Target name from migrator.toml")
    p_migrate.set_defaults(func=cmd_migrate)

    # status command
    p_status = subparsers.add_parser("status", help="Show project and migration status")
    p_status.add_argument("project", help="Project code")
    p_status.set_defaults(func=cmd_status)

    return parser


def main() -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = build_parser()
    args = parser.parse_args()
    _setup_logging(args.debug)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
