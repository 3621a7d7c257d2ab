from datetime import datetime
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import AcademicBase, RoomsBase

SESSION_NORMAL = "normal"
SESSION_SUSPENDED = "suspended"


def now():
    return datetime.utcnow()


def new_id():
    return str(uuid4())


# ─── Academic store ────────────────────────────────────────────────────────────

class Student(AcademicBase):
    __tablename__ = "students"
    id = Column(String, primary_key=True, index=True)
    email = Column(String, nullable=False)
    enrollments = relationship("Enrollment", back_populates="student")


class Enrollment(AcademicBase):
    __tablename__ = "enrollments"
    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(String, ForeignKey("students.id"), nullable=False, index=True)
    course_id = Column(Integer, nullable=False, index=True)
    active = Column(Boolean, default=True, nullable=False)
    record_type = Column(Integer, default=1, nullable=False)
    student = relationship("Student", back_populates="enrollments")


class CourseTimetable(AcademicBase):
    """Timetable as published by the academic system; read-only for this service."""

    __tablename__ = "course_timetables"
    course_id = Column(Integer, primary_key=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    day_codes = Column(String, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)


class CourseRoom(AcademicBase):
    __tablename__ = "course_rooms"
    course_id = Column(Integer, primary_key=True)
    room_id = Column(String, index=True)
    room_name = Column(String)
    room_url = Column(String)
    moderator_key = Column(String)
    viewer_key = Column(String)
    meeting_id = Column(String)
    friendly_id = Column(String)
    record_id = Column(String)
    calendar_event_id = Column(String)
    start_date = Column(Date)
    end_date = Column(Date)
    day_codes = Column(String)
    start_time = Column(Time)
    end_time = Column(Time)

    @property
    def has_schedule(self) -> bool:
        return bool(
            self.start_date
            and self.end_date
            and self.day_codes
            and self.start_time is not None
            and self.end_time is not None
        )


class Invitation(AcademicBase):
    __tablename__ = "course_invitations"
    __table_args__ = (UniqueConstraint("course_id", "student_id", name="uq_invitation_course_student"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    student_id = Column(String, nullable=False)
    url = Column(String, nullable=False)
    calendar_event_id = Column(String)
    created_at = Column(DateTime, default=now)


class CourseSession(AcademicBase):
    __tablename__ = "course_sessions"
    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, index=True)
    session_number = Column(Integer, nullable=False)
    session_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=SESSION_NORMAL)
    moved_to = Column(Date)
    calendar_event_id = Column(String)


# ─── Room store ────────────────────────────────────────────────────────────────

class User(RoomsBase):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=new_id)
    email = Column(String, nullable=False, unique=True)


class Room(RoomsBase):
    __tablename__ = "rooms"
    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    meeting_id = Column(String, nullable=False)
    friendly_id = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    calendar_event_id = Column(String)
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class RoomMeetingOption(RoomsBase):
    __tablename__ = "room_meeting_options"
    id = Column(String, primary_key=True, default=new_id)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False, index=True)
    meeting_option_id = Column(String, nullable=False)
    value = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=now)
    updated_at = Column(DateTime, default=now, onupdate=now)


class Recording(RoomsBase):
    __tablename__ = "recordings"
    id = Column(String, primary_key=True, default=new_id)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False, index=True)
    record_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=now)


class Format(RoomsBase):
    __tablename__ = "formats"
    id = Column(String, primary_key=True, default=new_id)
    recording_id = Column(String, ForeignKey("recordings.id"), nullable=False, index=True)
    recording_type = Column(String, nullable=False, default="presentation")
    url = Column(String)


class SharedAccess(RoomsBase):
    __tablename__ = "shared_accesses"
    id = Column(String, primary_key=True, default=new_id)
    room_id = Column(String, ForeignKey("rooms.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
