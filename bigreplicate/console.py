"""Rich console abstraction layer for BigReplicate CLI output.

All user-facing output goes through here; diagnostic detail goes to the
logging configured in logging_config. Handles the NO_COLOR environment
variable and CI/CD compatibility.
"""

from __future__ import annotations

import os
from typing import Any, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

# Singleton console instance
_console: Optional[Console] = None


def get_console() -> Console:
    """Get or create the singleton Rich Console instance.

    Respects NO_COLOR environment variable and detects CI environments.
    """
    global _console
    if _console is None:
        no_color = os.getenv("NO_COLOR", "").lower() in ("1", "true", "yes")
        is_ci = os.getenv("CI", "").lower() in ("1", "true", "yes")
        force_terminal = not (no_color or is_ci)

        _console = Console(
            force_terminal=force_terminal,
            no_color=no_color,
            highlight=False,  # table ids look like numbers/paths to the highlighter
        )
    return _console


def success(message: str, emoji: bool = True) -> None:
    """Display success message in green with checkmark."""
    prefix = "✓ " if emoji else ""
    get_console().print(f"[green]{prefix}{message}[/green]")


def error(message: str, emoji: bool = True) -> None:
    """Display error message in red with cross."""
    prefix = "✗ " if emoji else ""
    get_console().print(f"[red]{prefix}{message}[/red]")


def warning(message: str, emoji: bool = True) -> None:
    """Display warning message in yellow with warning symbol."""
    prefix = "⚠ " if emoji else ""
    get_console().print(f"[yellow]{prefix}{message}[/yellow]")


def info(message: str, bold: bool = False) -> None:
    get_console().print(message, style="bold" if bold else "")


def newline() -> None:
    get_console().print()


def header(title: str, style: str = "cyan") -> None:
    """Display section header with decorative border."""
    get_console().print(Rule(title, style=style))


def table(
    data: List[List[Any]],
    headers: List[str],
    title: Optional[str] = None,
    status_column: Optional[str] = None,
) -> None:
    """Display data in a formatted Rich table.

    Args:
        data: List of rows (each row is a list of values)
        headers: Column headers
        title: Optional table title
        status_column: Header of a column holding pipeline states; "completed"
            cells are shown green and "failed" cells red
    """
    rich_table = Table(
        title=title,
        show_header=True,
        header_style="bold cyan",
        border_style="dim",
    )

    for column in headers:
        rich_table.add_column(column, justify="right" if "count" in column.lower() else "left")

    status_index = headers.index(status_column) if status_column in headers else None
    for row in data:
        # Job error messages may contain [brackets]
        cells = [escape(str(cell)) for cell in row]
        if status_index is not None:
            cells[status_index] = _status_markup(cells[status_index])
        rich_table.add_row(*cells)

    get_console().print(rich_table)


def _status_markup(state: str) -> str:
    if state == "completed":
        return f"[green]{state}[/green]"
    if state == "failed":
        return f"[red]{state}[/red]"
    return state
