"""CLI for schema introspection and package generation.

Usage:
    schemagen tables
    schemagen introspect posts
    schemagen introspect posts --snapshot schema.json
    schemagen relationships posts
    schemagen plan views
    schemagen run posts model controller views --overwrite
    schemagen rollback                  # latest run
    schemagen rollback 20240101-120000-ab12cd34
    schemagen history
    schemagen prune-backups --max-age 7

Commands:
    tables         - List introspectable tables
    introspect     - Show a table's columns with mapped types and rules
    relationships  - Show inferred relationships of a table
    plan           - Show the execution plan for packages (dry run)
    run            - Generate packages for a table
    rollback       - Revert the files written by a run
    history        - List logged runs
    prune-backups  - Delete old backup directories
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from schemagen.backup.writer import BackupManager
from schemagen.config.loader import DEFAULT_CONFIG_NAME, load_config
from schemagen.config.models import Configuration
from schemagen.errors import BackupCorruptedError, SchemagenError
from schemagen.factory import create_pipeline, create_source, generate_for_table
from schemagen.inference.relationships import RelationshipInferencer
from schemagen.inference.types import TypeMapper
from schemagen.pipeline.models import PackageStatus, RunReport
from schemagen.pipeline.resolver import DependencyResolver
from schemagen.schema.introspector import SchemaIntrospector

console = Console()

_OUTCOME_STYLES = {
    "completed": "green",
    "completed_with_warnings": "yellow",
    "rolled_back": "red",
    "aborted": "red",
}
_STATUS_STYLES = {
    PackageStatus.SUCCESS: "green",
    PackageStatus.FAILED: "red",
    PackageStatus.SKIPPED: "yellow",
}


# ============================================================================
# Helpers
# ============================================================================


def _configure_logging(args: argparse.Namespace) -> None:
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> Configuration:
    """Explicit --config must exist; otherwise ./schemagen.toml or defaults."""
    if args.config:
        return load_config(Path(args.config))
    default = Path.cwd() / DEFAULT_CONFIG_NAME
    if default.exists():
        return load_config(default)
    return Configuration()


def _print_error(error: Exception) -> None:
    console.print(f"[bold red]x[/bold red] {error}")


def _print_report(report: RunReport) -> None:
    table = Table(title=f"Run {report.run_id}", show_header=True, header_style="bold")
    table.add_column("Package")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Files / reason")

    for result in report.results:
        style = _STATUS_STYLES[result.status]
        if result.status == PackageStatus.SUCCESS:
            detail = "\n".join(result.produced_files) or "[dim](no files)[/dim]"
        elif result.status == PackageStatus.FAILED:
            detail = (result.error or {}).get("message", "")
        else:
            detail = result.reason or ""
        table.add_row(
            result.package,
            f"[{style}]{result.status.value}[/{style}]",
            str(result.attempts),
            detail,
        )
    console.print(table)

    for warning in report.warnings:
        console.print(f"  [yellow]![/yellow] {warning.entity}: {warning.message}")
    if report.error:
        console.print(f"  [red]{report.error['kind']}[/red]: {report.error['message']}")
    for error in report.restore_errors:
        console.print(f"  [red]restore failed[/red]: {error['message']}")

    style = _OUTCOME_STYLES[report.outcome]
    console.print(f"\nOutcome: [bold {style}]{report.outcome}[/bold {style}]")


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_tables(args: argparse.Namespace, config: Configuration) -> int:
    async with create_source(config, args.profile) as source:
        listing = await SchemaIntrospector(source, config.introspection).list_tables()

    table = Table(title="Tables", show_header=True, header_style="bold")
    table.add_column("Table")
    for name in listing.tables:
        table.add_row(name)
    console.print(table)

    if listing.ignored:
        console.print(f"[dim]Ignored: {', '.join(listing.ignored)}[/dim]")
    if listing.is_truncated:
        console.print(
            f"[yellow]Scan limit reached; not listed: {', '.join(listing.truncated)}[/yellow]"
        )
    return 0


async def _async_introspect(args: argparse.Namespace, config: Configuration) -> int:
    async with create_source(config, args.profile) as source:
        introspector = SchemaIntrospector(source, config.introspection)
        if args.snapshot:
            snapshot = await introspector.snapshot(args.snapshot)
            console.print(
                f"[bold green]v[/bold green] Wrote {len(snapshot.tables)} table(s) "
                f"to [cyan]{args.snapshot}[/cyan]"
            )
            return 0
        schema = await introspector.introspect(args.table)

    mapper = TypeMapper(config.type_mapping)
    rules = mapper.map_validation_rules(schema)
    primary = set(schema.primary_key or ())

    table = Table(title=schema.name, show_header=True, header_style="bold")
    table.add_column("Column")
    table.add_column("Native type")
    table.add_column("Type")
    table.add_column("Cast")
    table.add_column("Rules")
    for column in schema.columns:
        target = mapper.map_column_type(column)
        name = f"[bold]{column.name}[/bold]" if column.name in primary else column.name
        table.add_row(
            name,
            column.native_type,
            target.type,
            target.cast or "",
            rules[column.name].expression if column.name in rules else "",
        )
    console.print(table)

    flags = []
    if schema.has_timestamps:
        flags.append("timestamps")
    if schema.has_soft_deletes:
        flags.append("soft deletes")
    if flags:
        console.print(f"[dim]Has {', '.join(flags)}[/dim]")
    return 0


async def _async_relationships(args: argparse.Namespace, config: Configuration) -> int:
    async with create_source(config, args.profile) as source:
        introspector = SchemaIntrospector(source, config.introspection)
        schema = await introspector.introspect(args.table)
        all_schemas = await introspector.introspect_all()
    all_schemas.setdefault(schema.name, schema)

    result = RelationshipInferencer(config.relationships).infer(schema, all_schemas)

    table = Table(title=f"Relationships of {schema.name}", show_header=True, header_style="bold")
    table.add_column("Kind")
    table.add_column("Method")
    table.add_column("Related")
    table.add_column("Keys")
    for rel in result.relationships:
        if rel.through_table:
            related = f"{rel.related_table} (via {rel.through_table})"
        else:
            related = rel.related_table or f"[dim]by {rel.morph_type_column}[/dim]"
        keys = ", ".join(k for k in (rel.foreign_key_name, rel.related_key_name) if k)
        table.add_row(rel.kind.value, rel.method_name, related, keys)
    console.print(table)

    for warning in result.warnings:
        console.print(f"  [yellow]![/yellow] {warning.entity}: {warning.message}")
    return 0


async def _async_run(args: argparse.Namespace, config: Configuration) -> int:
    pipeline = create_pipeline(config)

    variables = {}
    for item in args.var or []:
        key, sep, value = item.partition("=")
        if not sep:
            console.print(f"[red]Invalid --var '{item}' (expected key=value)[/red]")
            return 1
        variables[key] = value
    options = {name: {"variables": variables} for name in pipeline.registry.names} if variables else None

    async with create_source(config, args.profile) as source:
        introspector = SchemaIntrospector(source, config.introspection)
        report = await generate_for_table(
            introspector,
            pipeline,
            args.table,
            args.packages,
            config,
            per_package_options=options,
            overwrite=args.overwrite,
            parallel=True if args.parallel else None,
        )

    _print_report(report)
    return 0 if report.outcome.startswith("completed") else 1


# ============================================================================
# Command handlers
# ============================================================================


def cmd_tables(args: argparse.Namespace, config: Configuration) -> int:
    """List introspectable tables."""
    return asyncio.run(_async_tables(args, config))


def cmd_introspect(args: argparse.Namespace, config: Configuration) -> int:
    """Show a table's columns, or write a schema snapshot with --snapshot."""
    if not args.table and not args.snapshot:
        console.print("[red]Give a table name or --snapshot PATH[/red]")
        return 1
    return asyncio.run(_async_introspect(args, config))


def cmd_relationships(args: argparse.Namespace, config: Configuration) -> int:
    """Show inferred relationships of a table."""
    return asyncio.run(_async_relationships(args, config))


def cmd_plan(args: argparse.Namespace, config: Configuration) -> int:
    """Show the resolved execution plan without running anything.

    Reads only local config -- no database calls.
    """
    pipeline = create_pipeline(config)
    plan = pipeline.dry_run(args.packages)
    resolver = DependencyResolver()

    table = Table(title="Execution plan", show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Package")
    table.add_column("Depends on")
    table.add_column("Priority", justify="right")
    table.add_column("Critical")
    table.add_column("Timeout", justify="right")
    for index, pkg in enumerate(plan.packages, start=1):
        name = f"[bold cyan]{pkg.name}[/bold cyan]" if pkg.name in plan.requested else pkg.name
        table.add_row(
            str(index),
            name,
            ", ".join(pkg.depends_on),
            str(pkg.priority),
            "[red]yes[/red]" if pkg.is_critical else "no",
            f"{pkg.timeout_seconds:g}s" if pkg.timeout_seconds else "-",
        )
    console.print(table)

    levels = resolver.execution_levels(plan)
    console.print(f"[dim]Levels: {' | '.join(', '.join(level) for level in levels)}[/dim]")
    console.print(f"[dim]Critical path: {' -> '.join(resolver.critical_path(plan))}[/dim]")
    return 0


def cmd_run(args: argparse.Namespace, config: Configuration) -> int:
    """Generate packages for a table."""
    return asyncio.run(_async_run(args, config))


def cmd_rollback(args: argparse.Namespace, config: Configuration) -> int:
    """Revert the files written by a run (default: the latest run)."""
    pipeline = create_pipeline(config)

    run_id = args.run_id
    if run_id is None:
        latest = pipeline.latest_run()
        if latest is None:
            console.print("[yellow]No runs in history.[/yellow]")
            return 1
        run_id = latest.run_id

    entry = pipeline.history.get(run_id)
    try:
        rolled_back = pipeline.rollback(run_id)
    except BackupCorruptedError as e:
        _print_error(e)
        return 1

    if not rolled_back:
        console.print(
            f"[yellow]Run {run_id} cannot be rolled back "
            f"(status: {entry.status.value}, {len(entry.records)} file(s))[/yellow]"
        )
        return 1

    console.print(
        f"[bold green]v[/bold green] Rolled back run [cyan]{run_id}[/cyan] "
        f"({len(entry.records)} file(s))"
    )
    return 0


def cmd_history(args: argparse.Namespace, config: Configuration) -> int:
    """List logged runs, newest first."""
    entries = create_pipeline(config).history.entries()
    if not entries:
        console.print("[yellow]No runs in history.[/yellow]")
        return 0

    table = Table(title="Run history", show_header=True, header_style="bold")
    table.add_column("Run")
    table.add_column("When")
    table.add_column("Table")
    table.add_column("Packages")
    table.add_column("Status")
    table.add_column("Files", justify="right")
    for entry in list(reversed(entries))[: args.limit]:
        table.add_row(
            entry.run_id,
            f"{entry.timestamp:%Y-%m-%d %H:%M:%S}",
            entry.table or "",
            ", ".join(entry.requested),
            entry.status.value,
            str(len(entry.records)),
        )
    console.print(table)
    return 0


def cmd_prune_backups(args: argparse.Namespace, config: Configuration) -> int:
    """Delete backup directories older than the retention age."""
    rollback = config.rollback
    max_age = args.max_age if args.max_age is not None else rollback.max_backup_age
    manager = BackupManager(rollback.backup_directory, run_id="", base_path=config.output.base_path)
    removed = manager.prune(max_age)
    console.print(f"Removed {len(removed)} backup run(s) older than {max_age:g} day(s)")
    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemagen",
        description="Schema-driven code generation",
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Path to config file (default: ./{DEFAULT_CONFIG_NAME} if present)",
    )
    parser.add_argument(
        "--profile",
        "-p",
        default=None,
        help="Schema source profile (default: SCHEMAGEN_PROFILE or the only profile)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log progress")
    parser.add_argument("--debug", action="store_true", help="Log debug details")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # tables command
    p_tables = subparsers.add_parser("tables", help="List introspectable tables")
    p_tables.set_defaults(func=cmd_tables)

    # introspect command
    p_introspect = subparsers.add_parser(
        "introspect",
        help="Show a table's columns with mapped types and rules",
    )
    p_introspect.add_argument("table", nargs="?", help="Table to introspect")
    p_introspect.add_argument(
        "--snapshot",
        metavar="PATH",
        help="Write a JSON snapshot of every table instead",
    )
    p_introspect.set_defaults(func=cmd_introspect)

    # relationships command
    p_rel = subparsers.add_parser(
        "relationships",
        help="Show inferred relationships of a table",
    )
    p_rel.add_argument("table", help="Table to inspect")
    p_rel.set_defaults(func=cmd_relationships)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Show the execution plan for packages (dry run)",
    )
    p_plan.add_argument("packages", nargs="+", help="Requested packages")
    p_plan.set_defaults(func=cmd_plan)

    # run command
    p_run = subparsers.add_parser("run", help="Generate packages for a table")
    p_run.add_argument("table", help="Table to generate from")
    p_run.add_argument("packages", nargs="+", help="Requested packages")
    p_run.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace existing files (previous content is backed up)",
    )
    p_run.add_argument(
        "--parallel",
        action="store_true",
        help="Run independent packages concurrently",
    )
    p_run.add_argument(
        "--var",
        action="append",
        metavar="KEY=VALUE",
        help="Extra template variable (repeatable)",
    )
    p_run.set_defaults(func=cmd_run)

    # rollback command
    p_rollback = subparsers.add_parser("rollback", help="Revert the files written by a run")
    p_rollback.add_argument("run_id", nargs="?", help="Run to revert (default: latest)")
    p_rollback.set_defaults(func=cmd_rollback)

    # history command
    p_history = subparsers.add_parser("history", help="List logged runs")
    p_history.add_argument("--limit", type=int, default=20, help="Runs to show (default: 20)")
    p_history.set_defaults(func=cmd_history)

    # prune-backups command
    p_prune = subparsers.add_parser("prune-backups", help="Delete old backup directories")
    p_prune.add_argument(
        "--max-age",
        type=float,
        default=None,
        help="Age in days (default: rollback.max_backup_age)",
    )
    p_prune.set_defaults(func=cmd_prune_backups)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, 1 for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args)

    try:
        config = _load_config(args)
        return args.func(args, config)
    except (SchemagenError, FileNotFoundError) as e:
        _print_error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
