from typing import Any

from fastapi import APIRouter, Query

from pulse.v1.core.exceptions import create_success_response
from pulse.v1.engine.pulse import EngineDep, PulseEngine

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=dict)
async def drain_notifications(
    limit: int | None = Query(default=None, ge=1, le=1000),
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """Return queued notifications and remove them from the queue."""

    notifications = engine.queue.drain(limit)
    return create_success_response(
        data={
            "notifications": [n.model_dump(mode="json") for n in notifications],
            "count": len(notifications),
        }
    )
