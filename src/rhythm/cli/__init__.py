"""
CLI layer for rhythm.

Provides a Typer application for inspecting settings and running the
tick/tock demonstration. Scheduling logic lives in ``rhythm.scheduler``;
this package handles only terminal transport.

Entry point::

    rhythm --help
"""

from rhythm.cli.app import app

__all__ = ["app"]
