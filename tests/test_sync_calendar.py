import asyncio
from datetime import date

import pytest

from room_scheduler.exceptions import InvalidStateError
from room_scheduler.models import SESSION_SUSPENDED, CourseRoom, CourseSession
from room_scheduler.services.invitation_service import InvitationService

from conftest import COURSE_ID, seed_course

DROPPED = date(2025, 5, 5)


@pytest.fixture()
def service(academic_db, calendar, mailer):
    return InvitationService(academic_db, calendar, mailer, timezone="America/Santiago")


def _suspend(db, day):
    row = (
        db.query(CourseSession)
        .filter(CourseSession.course_id == COURSE_ID, CourseSession.session_date == day)
        .one()
    )
    row.status = SESSION_SUSPENDED
    db.commit()


def test_sync_cancels_occurrences_without_active_session(academic_db, calendar, service):
    seed_course(academic_db, sessions=True)
    asyncio.run(service.send_course_invitations(COURSE_ID))
    _suspend(academic_db, DROPPED)
    series_id = academic_db.get(CourseRoom, COURSE_ID).calendar_event_id

    cancelled = asyncio.run(service.sync_calendar(COURSE_ID))

    assert cancelled == 1
    assert calendar.cancelled_days(series_id) == {DROPPED}


def test_sync_is_idempotent(academic_db, calendar, service):
    seed_course(academic_db, sessions=True)
    asyncio.run(service.send_course_invitations(COURSE_ID))
    _suspend(academic_db, DROPPED)
    asyncio.run(service.sync_calendar(COURSE_ID))

    assert asyncio.run(service.sync_calendar(COURSE_ID)) == 0
    assert calendar.calls.count("cancel_occurrence") == 1


def test_sync_after_reprogram_changes_nothing(academic_db, calendar, service):
    seed_course(academic_db, sessions=True)
    asyncio.run(service.send_course_invitations(COURSE_ID))
    number = (
        academic_db.query(CourseSession.session_number)
        .filter(CourseSession.session_date == date(2025, 4, 7))
        .scalar()
    )
    asyncio.run(service.reprogram_session(COURSE_ID, number, date(2025, 4, 7), date(2025, 4, 11)))

    assert asyncio.run(service.sync_calendar(COURSE_ID)) == 0


def test_sync_leaves_course_without_sessions_alone(academic_db, calendar, service):
    seed_course(academic_db)
    asyncio.run(service.send_course_invitations(COURSE_ID))

    assert asyncio.run(service.sync_calendar(COURSE_ID)) == 0
    assert "cancel_occurrence" not in calendar.calls


def test_sync_requires_calendar_event(academic_db, service):
    seed_course(academic_db, sessions=True)

    with pytest.raises(InvalidStateError):
        asyncio.run(service.sync_calendar(COURSE_ID))


def test_sync_continues_after_cancel_failure(academic_db, calendar, service):
    seed_course(academic_db, sessions=True)
    asyncio.run(service.send_course_invitations(COURSE_ID))
    _suspend(academic_db, DROPPED)
    calendar.fail_on.add("cancel_occurrence")

    assert asyncio.run(service.sync_calendar(COURSE_ID)) == 0
    assert calendar.calls.count("cancel_occurrence") == 1


def test_sync_all_skips_failing_courses(academic_db, calendar, service):
    seed_course(academic_db, sessions=True)
    asyncio.run(service.send_course_invitations(COURSE_ID))
    _suspend(academic_db, DROPPED)
    seed_course(
        academic_db, course_id=777, students=[], calendar_event_id="evt-missing", sessions=True, room_id="room-2"
    )

    assert asyncio.run(service.sync_all_calendars()) == 1
