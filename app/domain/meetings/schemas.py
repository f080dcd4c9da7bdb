"""Meeting domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models import MeetingStatus
from ...shared.timeutils import to_naive_utc


class MeetingResponse(BaseModel):
    id: int
    appointment_id: int
    zoom_meeting_id: str
    topic: str
    start_time: datetime
    duration: int
    join_url: str
    password: Optional[str] = None
    status: MeetingStatus
    host_url: Optional[str] = None  # doctor and admin only

    class Config:
        from_attributes = True


class MeetingUpdate(BaseModel):
    topic: Optional[str] = None
    start_time: Optional[datetime] = None
    duration: Optional[int] = None

    @field_validator("topic")
    @classmethod
    def validate_topic(cls, v):
        if v is not None and not 1 <= len(v.strip()) <= 200:
            raise ValueError("Topic must be between 1 and 200 characters")
        return v.strip() if v else v

    @field_validator("start_time")
    @classmethod
    def normalize_start(cls, v):
        return to_naive_utc(v) if v else v

    @field_validator("duration")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and not 15 <= v <= 240:
            raise ValueError("Duration must be between 15 and 240 minutes")
        return v


class MeetingStats(BaseModel):
    total_meetings: int
    scheduled_meetings: int
    active_meetings: int
    completed_meetings: int
    cancelled_meetings: int
