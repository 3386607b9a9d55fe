"""
Notification preference and delivery-context models.
"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator

from taskquest.models.enums import ActivityState


class NotificationPreferences(BaseModel):
    """Per-user notification settings; defaults apply until the user saves their own."""

    user_id: Optional[str] = None
    enabled: bool = True
    quiet_hours_start: str = Field(default="22:00", description="HH:MM local time")
    quiet_hours_end: str = Field(default="08:00", description="HH:MM local time")
    delay_short_minutes: int = Field(default=15, ge=0)
    delay_medium_minutes: int = Field(default=60, ge=0)
    delay_long_minutes: int = Field(default=240, ge=0)
    max_per_hour: int = Field(default=10, ge=0)
    smart_timing: bool = True

    @field_validator("quiet_hours_start", "quiet_hours_end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        parts = v.split(":")
        if len(parts) < 2:
            raise ValueError(f"Expected HH:MM, got {v!r}")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError(f"Out of range time {v!r}")
        return f"{hour:02d}:{minute:02d}"


class DeliveryContext(BaseModel):
    """Snapshot of the user's situation when a notification is about to be sent."""

    hour: int = Field(ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)
    activity: ActivityState = ActivityState.IDLE
    available: bool = True
    focus_mode: bool = False
    sent_last_hour: int = Field(default=0, ge=0)
