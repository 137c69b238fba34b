from typing import Any

from fastapi import APIRouter, status

from pulse.v1.core.exceptions import create_success_response
from pulse.v1.core.security import Principal, PrincipalDep
from pulse.v1.engine.pulse import EngineDep, PulseEngine
from pulse.v1.reminders.schemas import ReminderCreate, ReminderResponse

router = APIRouter(prefix="/reminders", tags=["reminders"])


@router.post("", response_model=dict, status_code=status.HTTP_201_CREATED)
async def create_reminder(
    reminder_request: ReminderCreate,
    principal: Principal = PrincipalDep,
    engine: PulseEngine = EngineDep,
) -> dict[str, Any]:
    """Create a reminder fired once by the reminder loop."""

    reminder = await engine.reminders.create(
        owner_id=principal.user_id,
        title=reminder_request.title,
        remind_at=reminder_request.remind_at,
    )
    return create_success_response(
        data=ReminderResponse.model_validate(reminder).model_dump(mode="json"),
        message="Reminder created",
    )
