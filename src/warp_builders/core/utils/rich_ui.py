"""
Rich UI components for log output and CLI display in warp_builders.
"""

import logging
import os
from typing import Dict, List

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

console = Console()


def is_rich_enabled() -> bool:
    """Check if Rich UI should be enabled based on environment"""
    return os.environ.get("WARP_BUILDERS_RICH_UI", "false").lower() in (
        "true",
        "1",
        "yes",
    )


def get_rich_handler() -> logging.Handler:
    """Get Rich logging handler bound to the shared console"""
    return RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )


def create_builders_panel(builder_name: str, builder_ids: List[str]) -> Panel:
    """Summarise a ready buildx cluster."""
    lines = [f"[bold]Builder:[/bold] {builder_name}"]
    lines.extend(f"  • node {index}: {builder_id}" for index, builder_id in enumerate(builder_ids))
    return Panel(
        "\n".join(lines),
        title="WarpBuild builders ready",
        border_style="green",
    )


def create_tools_table(tools: Dict[str, str]) -> Table:
    """Render tool name -> version output as a table."""
    table = Table(title="Docker tooling")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Output")
    for name, output in tools.items():
        table.add_row(name, output.strip() or "[red]unavailable[/red]")
    return table
