import asyncio
from datetime import date, datetime, timezone

import aiohttp
import aiosmtplib
import pytest

from room_scheduler import oauth_token
from room_scheduler.exceptions import ConfigurationError, DependencyError, EmailDeliveryError
from room_scheduler.models import SESSION_SUSPENDED, CourseSession
from room_scheduler.services import calendar_service, email_service
from room_scheduler.services.calendar_service import GoogleCalendarService, Occurrence
from room_scheduler.services.email_service import EmailService
from room_scheduler.services.invitation_service import InvitationService

from conftest import COURSE_ID, seed_course

DROPPED_DAYS = [date(2025, 5, 5), date(2025, 5, 7)]


class RecordedRequests:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, method, url, params=None, json=None, allow_missing=False):
        self.calls.append({"method": method, "url": url, "params": params, "json": json})
        return self.responses.pop(0)


@pytest.fixture()
def gateway():
    return GoogleCalendarService(calendar_id="classes@example.com", timezone="America/Santiago")


def test_list_occurrences_follows_pages(gateway, monkeypatch):
    requests = RecordedRequests(
        [
            {
                "items": [
                    {
                        "id": "evt_20250303",
                        "status": "confirmed",
                        "originalStartTime": {"dateTime": "2025-03-03T10:00:00-03:00"},
                    }
                ],
                "nextPageToken": "page-2",
            },
            {
                "items": [
                    {"id": "evt_20250305", "status": "cancelled", "originalStartTime": {"date": "2025-03-05"}},
                ]
            },
        ]
    )
    monkeypatch.setattr(gateway, "_request", requests)

    occurrences = asyncio.run(gateway.list_occurrences("evt"))

    assert [o.day for o in occurrences] == [date(2025, 3, 3), date(2025, 3, 5)]
    assert [o.cancelled for o in occurrences] == [False, True]
    assert requests.calls[0]["params"]["showDeleted"] == "true"
    assert requests.calls[1]["params"]["pageToken"] == "page-2"
    assert "/calendars/classes%40example.com/events/evt/instances" in requests.calls[0]["url"]


def test_cancel_occurrence_does_not_notify(gateway, monkeypatch):
    requests = RecordedRequests([{}])
    monkeypatch.setattr(gateway, "_request", requests)
    occurrence = Occurrence(id="evt_20250303", original_start=datetime(2025, 3, 3, 13, tzinfo=timezone.utc))

    asyncio.run(gateway.cancel_occurrence(occurrence))

    assert requests.calls[0]["method"] == "PATCH"
    assert requests.calls[0]["json"] == {"status": "cancelled"}
    assert requests.calls[0]["params"] == {"sendUpdates": "none"}
    assert occurrence.cancelled


def test_create_recurring_sends_full_attendee_list(gateway, monkeypatch):
    requests = RecordedRequests([{"id": "evt-new"}])
    monkeypatch.setattr(gateway, "_request", requests)
    start = datetime(2025, 3, 3, 13, tzinfo=timezone.utc)
    end = datetime(2025, 3, 3, 14, tzinfo=timezone.utc)

    event_id = asyncio.run(
        gateway.create_recurring(
            calendar_service.EventDetails(summary="Class: English B1"),
            ["ana@example.com", "ben@example.com"],
            start,
            end,
            "RRULE:FREQ=WEEKLY;UNTIL=20250601T235959Z;BYDAY=MO,WE",
        )
    )

    body = requests.calls[0]["json"]
    assert event_id == "evt-new"
    assert requests.calls[0]["params"] == {"sendUpdates": "all"}
    assert body["attendees"] == [{"email": "ana@example.com"}, {"email": "ben@example.com"}]
    assert body["recurrence"] == ["RRULE:FREQ=WEEKLY;UNTIL=20250601T235959Z;BYDAY=MO,WE"]
    assert body["start"]["timeZone"] == "America/Santiago"


def test_get_event_parses_times(gateway, monkeypatch):
    requests = RecordedRequests(
        [
            {
                "id": "evt",
                "summary": "Class: English B1",
                "start": {"dateTime": "2025-03-03T10:00:00-03:00", "timeZone": "America/Santiago"},
                "end": {"dateTime": "2025-03-03T11:00:00-03:00", "timeZone": "America/Santiago"},
                "attendees": [{"email": "ana@example.com"}, {"displayName": "Room resource"}],
            }
        ]
    )
    monkeypatch.setattr(gateway, "_request", requests)

    event = asyncio.run(gateway.get_event("evt"))

    assert event.start.hour == 10
    assert (event.end - event.start).total_seconds() == 3600
    assert event.attendees == ["ana@example.com"]
    assert event.timezone == "America/Santiago"


def test_email_uses_bcc(monkeypatch):
    sent = []

    async def fake_send(message, **kwargs):
        sent.append((message, kwargs))

    monkeypatch.setattr(email_service.aiosmtplib, "send", fake_send)
    mailer = EmailService(host="smtp.test", port=2525, sender="classes@example.com")

    asyncio.run(mailer.send_emails(["ana@example.com", "ben@example.com"], "Reminder", "<p>Hi</p>"))

    message, kwargs = sent[0]
    assert message["To"] == "classes@example.com"
    assert message["Bcc"] == "ana@example.com, ben@example.com"
    assert kwargs["hostname"] == "smtp.test"
    assert kwargs["port"] == 2525


def test_email_failure_is_wrapped(monkeypatch):
    async def failing_send(message, **kwargs):
        raise aiosmtplib.SMTPException("relay refused")

    monkeypatch.setattr(email_service.aiosmtplib, "send", failing_send)
    mailer = EmailService(host="smtp.test", sender="classes@example.com")

    with pytest.raises(EmailDeliveryError, match="relay refused"):
        asyncio.run(mailer.send_simple("ana@example.com", "Reminder", "<p>Hi</p>"))


def test_email_requires_configuration(monkeypatch):
    monkeypatch.setattr(email_service.config, "SMTP_HOST", None)
    mailer = EmailService(sender="classes@example.com")

    with pytest.raises(ConfigurationError):
        asyncio.run(mailer.send_simple("ana@example.com", "Reminder", "<p>Hi</p>"))


class UnreachableSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    def post(self, *args, **kwargs):
        raise aiohttp.ClientConnectionError("token endpoint unreachable")


@pytest.fixture()
def google_credentials(monkeypatch):
    monkeypatch.setattr(oauth_token, "_cached_token", None)
    monkeypatch.setattr(oauth_token.config, "GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setattr(oauth_token.config, "GOOGLE_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(oauth_token.config, "GOOGLE_REFRESH_TOKEN", "refresh-token")


def test_token_network_failure_is_a_dependency_error(google_credentials, monkeypatch):
    monkeypatch.setattr(oauth_token.aiohttp, "ClientSession", UnreachableSession)

    with pytest.raises(DependencyError, match="token endpoint unreachable"):
        asyncio.run(oauth_token.get_google_oauth_token())


def test_token_failure_while_cancelling_does_not_stop_sync(
    google_credentials, monkeypatch, academic_db, calendar, mailer
):
    seed_course(academic_db, sessions=True)
    service = InvitationService(academic_db, calendar, mailer, timezone="America/Santiago")
    asyncio.run(service.send_course_invitations(COURSE_ID))
    for row in academic_db.query(CourseSession).filter(CourseSession.session_date.in_(DROPPED_DAYS)):
        row.status = SESSION_SUSPENDED
    academic_db.commit()

    attempts = []

    async def cancel_with_token(occurrence, notify=False):
        attempts.append(occurrence.day)
        if len(attempts) == 1:
            await oauth_token.get_google_oauth_token()
        occurrence.status = "cancelled"

    monkeypatch.setattr(oauth_token.aiohttp, "ClientSession", UnreachableSession)
    monkeypatch.setattr(calendar, "cancel_occurrence", cancel_with_token)

    assert asyncio.run(service.sync_calendar(COURSE_ID)) == 1
    assert attempts == DROPPED_DAYS
