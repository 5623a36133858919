"""
CLI utility helpers - shared consoles and output formatting.
"""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def print_json(payload: Any) -> None:
    console.print_json(json.dumps(payload, default=str))


def kv_table(title: str, rows: dict[str, Any]) -> Table:
    """Two-column key/value table."""
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in rows.items():
        table.add_row(key, str(value))
    return table
