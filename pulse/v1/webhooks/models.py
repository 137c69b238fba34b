"""
Webhook registration model.
"""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulse.infra.database import Base, UTCDateTime, utcnow


class WebhookRegistration(Base):
    """Last callback URL registered on an external resource."""

    __tablename__ = "webhook_registrations"

    resource_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    callback_url: Mapped[str] = mapped_column(Text, nullable=False)
    hook_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    registered_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow
    )

    def __repr__(self) -> str:
        return f"<WebhookRegistration {self.resource_id} -> {self.callback_url}>"
