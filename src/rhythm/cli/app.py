"""
Root Typer application for the rhythm CLI.
"""

from __future__ import annotations

import typer
from typer import Typer

app = Typer(
    name="rhythm",
    help="rhythm - cooperative task scheduling for embedding hosts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("rhythm-scheduler")
        except PackageNotFoundError:
            from rhythm import __version__ as v
        typer.echo(f"rhythm {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """rhythm CLI - inspect settings and run the scheduler demo."""


# ── Sub-command registration ─────────────────────────────────────────────

from rhythm.cli.config import app as config_app  # noqa: E402
from rhythm.cli.demo import demo  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration inspection.")
app.command("demo")(demo)
