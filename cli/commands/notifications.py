"""Notification Commands - Pull queued notifications"""

import typer
from rich.console import Console

from ..client.endpoints import PulseAPIError, PulseClient
from ..utils.config_manager import config
from ..utils.formatting import create_notifications_table, print_error, print_info

console = Console()
app = typer.Typer(name="notifications", help="Notification delivery commands")


@app.command("pull")
def pull_notifications(
    limit: int | None = typer.Option(
        None, "--limit", "-l", help="Maximum notifications to pull"
    ),
):
    """📬 Pull and clear queued notifications"""
    limit = limit or config.get("display.notifications_limit")

    try:
        with PulseClient(config.get("api.base_url")) as client:
            data = client.pull_notifications(limit=limit)
    except PulseAPIError as e:
        print_error(f"Failed to pull notifications: {e}")
        raise typer.Exit(1) from None

    notifications = data.get("notifications", [])
    if not notifications:
        print_info("No new notifications")
        return

    console.print(create_notifications_table(notifications))
