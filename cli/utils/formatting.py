"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()

PRIORITY_STYLES = {"urgent": "bold red", "important": "yellow", "info": "blue"}
STATUS_STYLES = {
    "pending": "cyan",
    "running": "yellow",
    "done": "green",
    "failed": "red",
}


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_warning(message: str):
    """Print warning message with yellow styling"""
    console.print(f"[yellow]⚠ {message}[/yellow]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def create_jobs_table(jobs: list[dict[str, Any]]) -> Table:
    """Create a formatted table for scheduled jobs"""
    table = Table(title="Scheduled Jobs", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Type", justify="center", style="magenta")
    table.add_column("Run At", justify="left", style="white")
    table.add_column("Recurrence", justify="center", style="green")
    table.add_column("Status", justify="center")
    table.add_column("Last Error", justify="left", style="dim")

    for job in jobs:
        status = job.get("status", "")
        style = STATUS_STYLES.get(status, "white")
        table.add_row(
            job.get("id", "")[:8],
            job.get("type", ""),
            job.get("run_at", ""),
            job.get("recurrence") or "-",
            f"[{style}]{status}[/{style}]",
            _truncate(job.get("last_error") or "-", 40),
        )

    return table


def create_notifications_table(notifications: list[dict[str, Any]]) -> Table:
    """Create a formatted table for drained notifications"""
    table = Table(title="Notifications", box=box.ROUNDED)

    table.add_column("Priority", justify="center")
    table.add_column("Source", justify="center", style="magenta")
    table.add_column("Title", justify="left", style="white")
    table.add_column("Body", justify="left", style="dim")

    for notification in notifications:
        priority = notification.get("priority", "info")
        style = PRIORITY_STYLES.get(priority, "white")
        table.add_row(
            f"[{style}]{priority}[/{style}]",
            notification.get("source", ""),
            notification.get("title", ""),
            _truncate(notification.get("body", ""), 60),
        )

    return table


def create_loops_table(loops: dict[str, dict[str, Any]]) -> Table:
    """Create a formatted table for engine loop status"""
    table = Table(title="Engine Loops", box=box.ROUNDED)

    table.add_column("Loop", justify="left", style="cyan")
    table.add_column("Interval", justify="right", style="white")
    table.add_column("Runs", justify="right", style="green")
    table.add_column("Failures", justify="right", style="red")
    table.add_column("Next Run", justify="left", style="yellow")

    for name, loop in loops.items():
        table.add_row(
            name,
            f"{loop.get('interval_s', 0):g}s",
            str(loop.get("runs", 0)),
            str(loop.get("failures", 0)),
            loop.get("next_run_at") or "-",
        )

    return table


def _truncate(text: str, length: int) -> str:
    text = text.replace("\n", " ")
    return text[:length] + "..." if len(text) > length else text
