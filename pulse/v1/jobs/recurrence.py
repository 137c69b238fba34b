"""
Recurrence arithmetic for scheduled jobs.

The next run is always computed from the time the cycle was *scheduled*, not
from when it actually ran, so a late tick neither drifts the series nor skips
a cycle: a stalled process catches up one cycle per tick.
"""

from datetime import datetime, timedelta

from pulse.v1.core.exceptions import ValidationError
from pulse.v1.jobs.models import Recurrence

_STEPS: dict[Recurrence, timedelta] = {
    Recurrence.HOURLY: timedelta(hours=1),
    Recurrence.DAILY: timedelta(days=1),
    Recurrence.WEEKLY: timedelta(days=7),
}


def parse_recurrence(value: str | Recurrence | None) -> Recurrence | None:
    """Normalize a recurrence value, rejecting anything unknown."""
    if value is None or isinstance(value, Recurrence):
        return value
    try:
        return Recurrence(value)
    except ValueError:
        allowed = ", ".join(r.value for r in Recurrence)
        raise ValidationError(
            f"Invalid recurrence value: {value!r}. Use: {allowed}",
            details={"recurrence": value},
        ) from None


def advance(last_run_at: datetime, recurrence: str | Recurrence) -> datetime:
    """Return ``last_run_at`` plus exactly one recurrence unit."""
    return last_run_at + _STEPS[parse_recurrence(recurrence)]
