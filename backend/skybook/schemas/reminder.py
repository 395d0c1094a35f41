from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from skybook.core.clock import as_utc


class ReminderRecord(BaseModel):
    """Persisted reminder, one per (booking, lead time)."""
    booking_id: str
    user_email: str | None = None
    flight_number: str
    departure: datetime
    origin: str
    destination: str
    hours_before_flight: int = Field(..., gt=0)
    scheduled_for: datetime

    @field_validator("booking_id", mode="before")
    @classmethod
    def _booking_id_str(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("departure", "scheduled_for")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)
