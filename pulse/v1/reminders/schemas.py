from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReminderCreate(BaseModel):
    """Schema for creating a reminder."""

    title: str = Field(..., min_length=1, max_length=500)
    remind_at: datetime = Field(..., description="When to fire the reminder")


class ReminderResponse(BaseModel):
    """Schema for reminder API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    title: str
    remind_at: datetime
    triggered: bool
    created_at: datetime
