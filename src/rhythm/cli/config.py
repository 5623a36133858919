"""
CLI: ``rhythm config`` - settings inspection.
"""

from __future__ import annotations

import typer
from rich.markup import escape
from rich.table import Table

from rhythm.cli.utils import console, err_console
from rhythm.errors import ConfigError
from rhythm.settings import RhythmSettings, get_settings

app = typer.Typer(no_args_is_help=True)

_ENV_PREFIX = RhythmSettings.model_config.get("env_prefix", "RHYTHM_")


@app.callback()
def config_main() -> None:
    """Configuration inspection."""


@app.command("show")
def show_config(
    format: str = typer.Option("table", "--format", "-f", help="Output format: table, json, env"),
) -> None:
    """Show the effective settings."""
    try:
        settings = get_settings(_force_reload=True)
    except ConfigError as e:
        err_console.print(f"[red]Configuration Error:[/red] {escape(e.message)}")
        raise typer.Exit(1) from e

    if format == "json":
        console.print_json(settings.model_dump_json())
        return

    if format == "env":
        for key, value in sorted(settings.model_dump().items()):
            console.print(f"{_ENV_PREFIX}{key.upper()}={value}", markup=False, highlight=False)
        return

    if format != "table":
        err_console.print(f"[red]Unknown format:[/red] {escape(format)} (expected table, json, env)")
        raise typer.Exit(2)

    table = Table(title="rhythm settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_column("Environment variable", style="dim")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value), f"{_ENV_PREFIX}{key.upper()}")
    console.print(table)
