from datetime import date, datetime, time
from typing import List, Optional

from pydantic import BaseModel, EmailStr


class RoomCreate(BaseModel):
    name: str
    creator_email: EmailStr
    course_id: Optional[int] = None


class RoomOut(BaseModel):
    room_id: str
    name: str
    room_url: str
    moderator_key: str
    viewer_key: str
    meeting_id: str
    friendly_id: str
    record_id: str


class InvitationResult(BaseModel):
    message: str
    emails_sent: int
    invitations_recorded: int = 0
    failed: int = 0


class ScheduleUpdate(BaseModel):
    participant_emails: Optional[List[EmailStr]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    day_codes: Optional[str] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None


class RecordingOut(BaseModel):
    record_id: str
    created_at: str
    playback_url: str


class SessionReprogram(BaseModel):
    session_number: int
    original_date: date
    new_date: date


class SessionOut(BaseModel):
    course_id: int
    session_number: int
    session_date: date
    status: str
    moved_to: Optional[date] = None
    calendar_event_id: Optional[str] = None

    class Config:
        from_attributes = True


class ReprogramOut(BaseModel):
    session: SessionOut
    occurrence_cancelled: bool
    notified: int


class SyncOut(BaseModel):
    course_id: int
    cancelled: int
    checked_at: datetime
