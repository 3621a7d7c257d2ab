from datetime import date, time, timedelta

import pytest
from dateutil.rrule import rrulestr
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from room_scheduler import models
from room_scheduler.database import AcademicBase, RoomsBase
from room_scheduler.exceptions import CalendarServiceError, EmailDeliveryError
from room_scheduler.models import (
    SESSION_NORMAL,
    CourseRoom,
    CourseSession,
    CourseTimetable,
    Enrollment,
    Student,
)
from room_scheduler.services.calendar_service import (
    CANCELLED,
    CalendarService,
    EventDetails,
    Occurrence,
)
from room_scheduler.services.email_service import EmailService

COURSE_ID = 501
STUDENTS = [("s1", "ana@example.com"), ("s2", "ben@example.com")]
TIMEZONE = "America/Santiago"


def _memory_engine(base):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def academic_db():
    engine = _memory_engine(AcademicBase)
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def rooms_db():
    engine = _memory_engine(RoomsBase)
    SessionLocal = sessionmaker(bind=engine, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


class FakeCalendarService(CalendarService):
    """In-memory calendar that expands weekly rules into dated occurrences."""

    def __init__(self, date_only=False):
        self.events = {}
        self.occurrences = {}
        self.calls = []
        self.fail_on = set()
        self.date_only = date_only
        self._seq = 0

    def _check(self, name):
        self.calls.append(name)
        if name in self.fail_on:
            raise CalendarServiceError(503, f"{name} unavailable")

    def _next_id(self, prefix):
        self._seq += 1
        return f"{prefix}{self._seq}"

    def _expand(self, event_id, start, rule):
        previous = {o.day: o.status for o in self.occurrences.get(event_id, [])}
        expanded = []
        for moment in rrulestr(rule, dtstart=start):
            day = moment.date()
            expanded.append(
                Occurrence(
                    id=f"{event_id}_{day:%Y%m%d}",
                    original_start=day if self.date_only else moment,
                    status=previous.get(day, "confirmed"),
                )
            )
        self.occurrences[event_id] = expanded

    def _store(self, event_id, event, attendees, start, end, rule, notify, standalone=False):
        self.events[event_id] = {
            "summary": event.summary,
            "description": event.description,
            "location": event.location,
            "attendees": list(attendees),
            "start": start,
            "end": end,
            "rule": rule,
            "notify": notify,
            "standalone": standalone,
            "timezone": event.timezone or TIMEZONE,
        }

    async def create_recurring(self, event, attendees, start, end, rule, notify=True):
        self._check("create_recurring")
        event_id = self._next_id("evt")
        self._store(event_id, event, attendees, start, end, rule, notify)
        self._expand(event_id, start, rule)
        return event_id

    async def update_recurring(self, event_id, event, attendees, start, end, rule, notify=True):
        self._check("update_recurring")
        if event_id not in self.events:
            raise CalendarServiceError(404, "Not Found")
        self._store(event_id, event, attendees, start, end, rule, notify)
        self._expand(event_id, start, rule)
        return event_id

    async def delete_event(self, event_id, notify=False):
        self._check("delete_event")
        self.events.pop(event_id, None)
        self.occurrences.pop(event_id, None)

    async def list_occurrences(self, event_id):
        self._check("list_occurrences")
        if event_id not in self.events:
            raise CalendarServiceError(404, "Not Found")
        return list(self.occurrences.get(event_id, []))

    async def cancel_occurrence(self, occurrence, notify=False):
        self._check("cancel_occurrence")
        occurrence.status = CANCELLED

    async def create_standalone(self, event, notify=True):
        self._check("create_standalone")
        event_id = self._next_id("single")
        self._store(event_id, event, event.attendees, event.start, event.end, None, notify, standalone=True)
        return event_id

    async def get_event(self, event_id):
        self._check("get_event")
        stored = self.events.get(event_id)
        if stored is None:
            raise CalendarServiceError(404, "Not Found")
        return EventDetails(
            id=event_id,
            summary=stored["summary"],
            description=stored["description"],
            location=stored["location"],
            attendees=list(stored["attendees"]),
            start=stored["start"],
            end=stored["end"],
            timezone=stored["timezone"],
            recurrence=[stored["rule"]] if stored["rule"] else [],
        )

    def cancelled_days(self, event_id):
        return {o.day for o in self.occurrences.get(event_id, []) if o.cancelled}

    def recurring_ids(self):
        return [eid for eid, ev in self.events.items() if not ev["standalone"]]

    def standalone_ids(self):
        return [eid for eid, ev in self.events.items() if ev["standalone"]]


class FakeEmailService(EmailService):
    def __init__(self):
        super().__init__(host="smtp.test", sender="classes@example.com")
        self.sent = []
        self.fail_for = set()

    async def send_emails(self, recipients, subject, html_body):
        if any(r in self.fail_for for r in recipients):
            raise EmailDeliveryError(f"SMTP delivery failed for {recipients}")
        self.sent.append((list(recipients), subject, html_body))

    def recipients(self):
        return [r for recipients, _, _ in self.sent for r in recipients]


@pytest.fixture()
def calendar():
    return FakeCalendarService()


@pytest.fixture()
def mailer():
    return FakeEmailService()


def class_days(start, end, weekdays):
    day = start
    while day <= end:
        if day.weekday() in weekdays:
            yield day
        day += timedelta(days=1)


def seed_course(
    db,
    course_id=COURSE_ID,
    students=STUDENTS,
    schedule=True,
    timetable=False,
    calendar_event_id=None,
    sessions=False,
    room_id="room-1",
):
    for student_id, email in students:
        if db.get(Student, student_id) is None:
            db.add(Student(id=student_id, email=email))
        db.add(Enrollment(student_id=student_id, course_id=course_id, active=True, record_type=1))

    link = CourseRoom(
        course_id=course_id,
        room_id=room_id,
        room_name="English B1",
        room_url="http://localhost:5000/rooms/abc-def-ghi-jkl/join",
        moderator_key="mod12345",
        viewer_key="view1234",
        meeting_id="meeting-1",
        friendly_id="abc-def-ghi-jkl",
        calendar_event_id=calendar_event_id,
    )
    schedule_values = dict(
        start_date=date(2025, 3, 1),
        end_date=date(2025, 6, 1),
        day_codes="LU,MI",
        start_time=time(10, 0),
        end_time=time(11, 0),
    )
    if schedule:
        for name, value in schedule_values.items():
            setattr(link, name, value)
    db.add(link)

    if timetable:
        db.add(CourseTimetable(course_id=course_id, **schedule_values))

    if sessions:
        for number, day in enumerate(class_days(date(2025, 3, 1), date(2025, 6, 1), {0, 2}), start=1):
            db.add(
                CourseSession(
                    course_id=course_id,
                    session_number=number,
                    session_date=day,
                    status=SESSION_NORMAL,
                )
            )
    db.commit()
    return db.get(CourseRoom, course_id)


def session_number_for(db, course_id, day):
    row = (
        db.query(models.CourseSession)
        .filter(models.CourseSession.course_id == course_id, models.CourseSession.session_date == day)
        .first()
    )
    return row.session_number
