"""
CLI output helpers built on rich.

Status messages go to stderr so that manifests written to stdout stay
clean. Tables go to stdout.

Environment handling:
- Respects NO_COLOR and FORCE_COLOR environment variables
- Falls back to plain text when output is not a terminal
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

# Nord color palette (https://www.nordtheme.com/)
SCOREKIT_THEME = Theme(
    {
        "info": "#88C0D0",  # Nord frost - light blue
        "success": "#A3BE8C",  # Nord aurora - green
        "warning": "#EBCB8B",  # Nord aurora - yellow
        "error": "#BF616A bold",  # Nord aurora - red
        "highlight": "#B48EAD",  # Nord aurora - purple
        "muted": "#D8DEE9",  # Nord snow storm - light grey
    }
)

console = Console(
    theme=SCOREKIT_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)

err_console = Console(
    theme=SCOREKIT_THEME,
    stderr=True,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def success(message: str) -> None:
    """Print a success message."""
    err_console.print(f"[success]✓ {message}[/success]")


def error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]✗ {escape(message)}[/error]", highlight=False, soft_wrap=True)


def warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]⚠ {message}[/warning]")


def info(message: str) -> None:
    """Print an info message."""
    err_console.print(f"[info]ℹ {message}[/info]")


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    """Print a formatted table."""
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col, overflow="fold")

    for row in rows:
        table.add_row(*row)

    console.print(table)
