"""Core CLI application and shared utilities."""

from __future__ import annotations

from datetime import date
from itertools import islice
from typing import Optional

import typer
from click import get_current_context
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import Settings, check_settings, load_settings, parse_archive_settings
from ..errors import ConfigurationError, FileArchiverError
from ..logger import get_logger
from ..plugins import PluginType, default_registry
from ..windows import initial_cursor, iter_windows

app = typer.Typer(add_completion=False, no_args_is_help=True)
console = Console()
log = get_logger(__name__)


@app.callback()
def main(
    ctx: typer.Context,
    config: str = typer.Option(None, "--config", "-c", help="Path to file_archiver.yaml"),
    log_level: str = typer.Option(None, "--log-level", help="Log level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """File Archiver - Archive old files into per-period archives."""
    ctx.obj = {"config": config, "log_level": log_level}


def get_config_path(ctx: typer.Context | None = None) -> str | None:
    """Get config path from context."""
    context = ctx or get_current_context(silent=True)
    return context.obj.get("config") if context and context.obj else None


def load_cli_settings(ctx: typer.Context) -> Settings:
    """Load settings and configure logging from them; exit 1 on a bad config."""
    from ..logger import configure_logging

    try:
        s = load_settings(get_config_path(ctx))
    except ConfigurationError as e:
        configure_logging(level=(ctx.obj or {}).get("log_level"))
        console.print(f"❌ {escape(str(e))}", soft_wrap=True)
        raise typer.Exit(1)

    configure_logging(
        level=(ctx.obj or {}).get("log_level") or s.logging.level,
        json_output=s.logging.format == "json",
        log_file=s.logging.file,
    )
    return s


@app.command("run")
def run(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Select files without archiving or deleting them"),
    metrics_file: Optional[str] = typer.Option(None, "--metrics-file", help="Write Prometheus metrics to this file"),
) -> None:
    """Archive files of every configured entry once."""
    from ..engine import Engine
    from ..metrics import write_metrics

    s = load_cli_settings(ctx)
    results = Engine(s, dry_run=dry_run).run()

    table = Table(title="Archive Run" + (" (dry-run)" if dry_run else ""))
    table.add_column("Entry", style="cyan", no_wrap=True)
    table.add_column("Status", style="green")
    table.add_column("Windows", justify="right")
    table.add_column("Files", justify="right", style="yellow")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Error", style="dim")

    for r in results:
        table.add_row(
            r.name,
            "ok" if r.ok else "failed",
            str(len(r.cycles)),
            str(r.files_selected if dry_run else r.files_archived),
            str(r.failed_cycles),
            escape(r.error or ""),
        )
    console.print(table)

    if metrics_file:
        write_metrics(metrics_file)
        console.print(f"Metrics written to {metrics_file}")


@app.command("windows")
def windows(
    ctx: typer.Context,
    entry: str = typer.Argument(..., help="Entry name (or index)"),
    count: int = typer.Option(5, "--count", "-n", min=1, help="Number of windows to show"),
) -> None:
    """Preview the next archive windows of an entry."""
    s = load_cli_settings(ctx)

    raw = s.find_entry(entry)
    if raw is None:
        console.print(f"❌ Entry {entry} not found")
        raise typer.Exit(1)

    try:
        settings = parse_archive_settings(raw)
        cursor = initial_cursor(settings.retention_date_parameters, date.today())
        table = Table(title=f"Windows for {settings.display_name} ({settings.strategy.value})")
        table.add_column("#", justify="right")
        table.add_column("Start", style="cyan")
        table.add_column("End", style="magenta")
        for index, window in enumerate(
            islice(iter_windows(cursor, settings.strategy, settings.first_day_of_week), count), start=1
        ):
            table.add_row(str(index), window.start.isoformat(sep=" "), window.end.isoformat(sep=" ", timespec="milliseconds"))
    except (FileArchiverError, ValueError) as e:
        console.print(f"❌ {escape(str(e))}", soft_wrap=True)
        raise typer.Exit(1)

    console.print(f"Initial cursor: {cursor.isoformat(sep=' ')}")
    console.print(table)


@app.command("validate")
def validate(ctx: typer.Context) -> None:
    """Validate every archive entry of the configuration."""
    from ..engine import Engine

    s = load_cli_settings(ctx)
    engine = Engine(s)
    problems = []

    table = Table(title="Archive Entries")
    table.add_column("Entry", style="cyan", no_wrap=True)
    table.add_column("Path")
    table.add_column("Status")

    for index, raw in enumerate(s.entries()):
        name = f"entry-{index}"
        path = ""
        try:
            settings = parse_archive_settings(raw)
            name = settings.display_name
            path = settings.path or ""
            check_settings(settings)
            engine.check_plugins(settings)
            initial_cursor(settings.retention_date_parameters, date.today())
            table.add_row(name, path, "[green]ok[/green]")
        except (FileArchiverError, ValueError) as e:
            problems.append((name, e))
            table.add_row(name, path, "[red]invalid[/red]")

    console.print(table)
    if not s.entries():
        console.print("No archive entries configured")
    for name, error in problems:
        console.print(f"❌ {escape(name)}: {escape(str(error))}", soft_wrap=True)
    if problems:
        count = len(problems)
        console.print(f"❌ {count} invalid entr{'y' if count == 1 else 'ies'}")
        raise typer.Exit(1)
    console.print("✅ Configuration is valid")


@app.command("plugins")
def plugins() -> None:
    """List registered archive and storage plugins."""
    table = Table(title="Plugins")
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Aliases", style="dim")

    for plugin_type in PluginType:
        for name in default_registry.names(plugin_type):
            spec = default_registry.spec(plugin_type, name)
            table.add_row(plugin_type.value, spec.name, ", ".join(spec.aliases))
    console.print(table)


@app.command("schedule")
def schedule(
    ctx: typer.Context,
    metrics_file: Optional[str] = typer.Option(None, "--metrics-file", help="Write Prometheus metrics after each run"),
) -> None:
    """Run archives periodically using the configured cron expression."""
    from ..scheduler import ArchiveScheduler

    s = load_cli_settings(ctx)
    try:
        scheduler = ArchiveScheduler(s, metrics_file=metrics_file)
        scheduler.add_jobs()
    except ConfigurationError as e:
        console.print(f"❌ {escape(str(e))}", soft_wrap=True)
        raise typer.Exit(1)

    console.print(f"Archive scheduler running ({s.schedule.cron}). Press Ctrl+C to stop.")
    scheduler.start()
