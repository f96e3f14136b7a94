"""CLI formatters — console, tables, intensity bars, age strings."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text


def get_console(no_color: bool = False) -> Console:
    """Get a Rich Console, optionally with color disabled."""
    return Console(no_color=no_color)


def format_age(seconds: float) -> str:
    """Format how long ago something happened."""
    seconds = max(0.0, seconds)
    if seconds < 60:
        return f"{seconds:.0f}s ago"
    if seconds < 3600:
        m = int(seconds // 60)
        s = int(seconds % 60)
        return f"{m}m{s:02d}s ago"
    h = int(seconds // 3600)
    m = int((seconds % 3600) // 60)
    return f"{h}h {m:02d}m ago"


def intensity_bar(value: float, width: int = 20) -> Text:
    """Render a [0, 1] value as a bar, colored by how strong it is."""
    value = max(0.0, min(1.0, value))
    filled = round(value * width)
    style = "red" if value > 0.66 else "yellow" if value > 0.33 else "green"
    bar = Text("#" * filled, style=style)
    bar.append("." * (width - filled), style="dim")
    return bar


def weight_style(weight: float) -> str:
    """Green for amplified, red for dampened, dim for neutral."""
    if weight > 1.05:
        return "green"
    if weight < 0.95:
        return "red"
    return "dim"


def build_table(title: str, columns: list[str], rows: list[list[Any]]) -> Table:
    """Build a Rich table with standard styling. Text cells keep their style."""
    table = Table(title=title, show_header=True, header_style="bold")
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*(v if isinstance(v, Text) else str(v) for v in row))
    return table
