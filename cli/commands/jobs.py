"""Jobs Commands - Schedule, list and cancel background jobs"""

import json
from datetime import UTC, datetime, timedelta

import typer
from rich.console import Console
from rich.panel import Panel

from ..client.endpoints import PulseAPIError, PulseClient
from ..utils.config_manager import config
from ..utils.formatting import create_jobs_table, print_error, print_success

console = Console()
app = typer.Typer(name="jobs", help="Scheduled job management commands")

RECURRENCES = ("hourly", "daily", "weekly")


@app.command("schedule")
def schedule_job(
    type: str = typer.Argument(..., help="Job type, e.g. 'reminder' or 'send_email'"),
    at: str | None = typer.Option(
        None, "--at", help="ISO-8601 run time (UTC if no offset is given)"
    ),
    in_minutes: int | None = typer.Option(
        None, "--in", "-i", help="Run this many minutes from now"
    ),
    recurrence: str | None = typer.Option(
        None, "--every", "-e", help="Repeat: hourly, daily or weekly"
    ),
    payload: str = typer.Option("{}", "--payload", "-p", help="JSON payload"),
):
    """⏰ Schedule a one-time or recurring job"""
    if (at is None) == (in_minutes is None):
        print_error("Provide exactly one of --at or --in")
        raise typer.Exit(1)

    if recurrence and recurrence not in RECURRENCES:
        print_error(f"Recurrence must be one of: {', '.join(RECURRENCES)}")
        raise typer.Exit(1)

    try:
        payload_data = json.loads(payload)
    except json.JSONDecodeError as e:
        print_error(f"Payload is not valid JSON: {e}")
        raise typer.Exit(1) from None

    if at is not None:
        run_at = at
    else:
        run_at = (datetime.now(UTC) + timedelta(minutes=in_minutes)).isoformat()

    try:
        with PulseClient(config.get("api.base_url")) as client:
            result = client.schedule_job(
                type=type, run_at=run_at, payload=payload_data, recurrence=recurrence
            )
    except PulseAPIError as e:
        print_error(f"Failed to schedule job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job scheduled: {result.get('job_id')}")
    console.print(
        f"• Runs at: [yellow]{result.get('run_at')}[/yellow]"
        + (f"\n• Repeats: [green]{result['recurrence']}[/green]" if result.get("recurrence") else "")
    )


@app.command("list")
def list_jobs(
    status: list[str] | None = typer.Option(
        None, "--status", "-s", help="Filter by status (repeatable)"
    ),
):
    """📋 List your scheduled jobs"""
    try:
        with PulseClient(config.get("api.base_url")) as client:
            data = client.list_jobs(status=status)
    except PulseAPIError as e:
        print_error(f"Failed to list jobs: {e}")
        raise typer.Exit(1) from None

    jobs = data.get("jobs", [])
    if not jobs:
        console.print(
            Panel(
                "📭 [yellow]No scheduled jobs[/yellow]\n\n"
                "Schedule one with [cyan]pulse-cli jobs schedule ping --in 1[/cyan]",
                title="Empty Results",
                border_style="yellow",
            )
        )
        return

    console.print(create_jobs_table(jobs))
    console.print(f"\n📊 [yellow]{data.get('total', len(jobs))}[/yellow] job(s)")


@app.command("cancel")
def cancel_job(
    job_id: str = typer.Argument(..., help="ID of the pending job to cancel"),
):
    """🗑️ Cancel a pending job"""
    try:
        with PulseClient(config.get("api.base_url")) as client:
            client.cancel_job(job_id)
    except PulseAPIError as e:
        print_error(f"Failed to cancel job: {e}")
        raise typer.Exit(1) from None

    print_success(f"Job cancelled: {job_id}")
