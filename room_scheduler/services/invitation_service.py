"""Course invitations and the recurring calendar event behind them.

The invitation ledger (``course_invitations``) is the only thing that decides
whether a student gets a first invitation or a reminder; the calendar's own
attendee list is never consulted for that. Attendee lists are always written
whole: read the full roster, then replace.

None of these operations lock the course. Callers must run at most one of them
per course at a time, otherwise two calls can both see "no recurring event yet"
and both create one.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import config
from ..exceptions import (
    DependencyError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models import CourseRoom, CourseSession
from ..schemas import InvitationResult
from ..utils.academic_calendar import AcademicCalendar
from ..utils.day_codes import translate_day_codes
from ..utils.email_templates import reminder_replacements, reprogram_notice
from ..utils.recurrence import (
    build_weekly_rrule,
    first_occurrence,
    move_to_date,
    occurrence_window,
)
from .calendar_service import CalendarService, EventDetails
from .course_repository import CourseRepository
from .email_service import EmailService

logger = logging.getLogger(__name__)


@dataclass
class SeriesWindow:
    start: datetime
    end: datetime
    rule: str


@dataclass
class ReprogramResult:
    session: CourseSession
    occurrence_cancelled: bool
    notified: int


class InvitationService:
    def __init__(
        self,
        db: Session,
        calendar: CalendarService,
        mailer: EmailService,
        academic_calendar: Optional[AcademicCalendar] = None,
        timezone: Optional[str] = None,
    ):
        self.courses = CourseRepository(db)
        self.calendar = calendar
        self.mailer = mailer
        self.academic_calendar = academic_calendar or AcademicCalendar()
        self.timezone = timezone or config.CALENDAR_TIMEZONE

    # ─── Helpers ──────────────────────────────────────────────────────────────

    def _require_link(self, course_id: int) -> CourseRoom:
        link = self.courses.get_course_room(course_id)
        if link is None:
            raise NotFoundError("Course", course_id)
        return link

    def _require_schedule(self, course_id: int) -> CourseRoom:
        link = self._require_link(course_id)
        if link.has_schedule:
            return link

        logger.info("Course %s has no schedule, pulling it from the academic timetable", course_id)
        if self.courses.pull_schedule_from_timetable(course_id):
            link = self._require_link(course_id)
        else:
            logger.warning("No timetable found for course %s", course_id)

        if not link.has_schedule:
            raise InvalidStateError(
                f"Course {course_id} has no schedule (dates, days of the week and times) "
                "to build a recurring event from"
            )
        return link

    def _series_window(
        self,
        start_date: date,
        end_date: date,
        day_codes: str,
        start_time: time,
        end_time: time,
    ) -> SeriesWindow:
        byday = translate_day_codes(day_codes)
        if not byday:
            logger.warning("Day pattern %r has no recognizable days; not building a recurrence", day_codes)
            raise InvalidStateError(f"Day pattern '{day_codes}' does not contain any valid day")
        first_day = first_occurrence(start_date, byday)
        start, end = occurrence_window(first_day, start_time, end_time, self.timezone)
        return SeriesWindow(start=start, end=end, rule=build_weekly_rrule(end_date, byday, self.timezone))

    def _link_window(self, link: CourseRoom) -> SeriesWindow:
        return self._series_window(
            link.start_date, link.end_date, link.day_codes, link.start_time, link.end_time
        )

    @staticmethod
    def _event_details(link: CourseRoom) -> EventDetails:
        return EventDetails(
            summary=f"Class: {link.room_name or link.course_id}",
            description=(
                "Join the virtual classroom.\n\n"
                f"URL: {link.room_url or ''}\n"
                f"Viewer key: {link.viewer_key or ''}"
            ),
            location=link.room_url or "",
        )

    async def _send_reminder(self, link: CourseRoom, email: str, url: Optional[str]) -> None:
        await self.mailer.send_templated(
            email,
            f"Reminder: your {link.room_name or 'virtual'} class",
            reminder_replacements(url or link.room_url, link.start_date, link.room_name, link.viewer_key),
        )

    # ─── Bulk course invitation ───────────────────────────────────────────────

    async def send_course_invitations(self, course_id: int) -> InvitationResult:
        link = self._require_schedule(course_id)

        roster = self.courses.get_roster(course_id)
        if not roster:
            return InvitationResult(message="No students found for the course.", emails_sent=0)

        known_urls = {}
        pending = []
        for student_id, email in roster:
            invitation = self.courses.get_invitation(course_id, student_id)
            if invitation is not None:
                logger.info("Student %s already invited to course %s; sending a reminder", student_id, course_id)
                known_urls[student_id] = invitation.url
            else:
                pending.append(student_id)

        window = self._link_window(link)
        event = self._event_details(link)
        attendees = [email for _, email in roster]

        try:
            if not link.calendar_event_id:
                event_id = await self.calendar.create_recurring(
                    event, attendees, window.start, window.end, window.rule
                )
                try:
                    self.courses.set_calendar_event_id(course_id, event_id)
                except Exception:
                    logger.exception("Could not store event %s on course %s; removing it", event_id, course_id)
                    await self._discard_event(event_id)
                    raise
            else:
                event_id = await self.calendar.update_recurring(
                    link.calendar_event_id,
                    event,
                    attendees,
                    window.start,
                    window.end,
                    window.rule,
                    notify=bool(pending),
                )
        except DependencyError:
            logger.exception("Calendar update failed for course %s; no invitation recorded", course_id)
            raise

        failed = 0
        recorded = 0
        for student_id in pending:
            try:
                self.courses.save_invitation(course_id, student_id, link.room_url, event_id)
                recorded += 1
            except Exception:
                logger.exception("Could not record invitation for student %s in course %s", student_id, course_id)
                failed += 1

        sent = 0
        for student_id, email in roster:
            try:
                await self._send_reminder(link, email, known_urls.get(student_id))
                sent += 1
            except Exception:
                logger.exception("Could not email student %s of course %s", student_id, course_id)
                failed += 1

        return InvitationResult(
            message=f"Invitations processed. {sent} email(s) sent.",
            emails_sent=sent,
            invitations_recorded=recorded,
            failed=failed,
        )

    # ─── Individual invitation ────────────────────────────────────────────────

    async def send_individual_invitation(self, course_id: int, student_id: str) -> InvitationResult:
        link = self._require_schedule(course_id)

        email = self.courses.get_student_email(course_id, student_id)
        if not email:
            raise NotFoundError("Student", student_id)

        invitation = self.courses.get_invitation(course_id, student_id)
        if invitation is not None:
            logger.info("Student %s already invited to course %s; sending a reminder", student_id, course_id)
            await self._send_reminder(link, email, invitation.url)
            return InvitationResult(message="Reminder sent.", emails_sent=1)

        window = self._link_window(link)
        event = self._event_details(link)
        try:
            if not link.calendar_event_id:
                event_id = await self.calendar.create_recurring(
                    event, [email], window.start, window.end, window.rule
                )
                self.courses.set_calendar_event_id(course_id, event_id)
            else:
                event_id = link.calendar_event_id
                attendees = self.courses.get_roster_emails(course_id)
                if email.lower() not in {address.lower() for address in attendees}:
                    attendees.append(email)
                await self.calendar.update_recurring(
                    event_id, event, attendees, window.start, window.end, window.rule
                )
        except DependencyError:
            logger.exception("Calendar invitation failed for student %s in course %s", student_id, course_id)
            raise

        self.courses.save_invitation(course_id, student_id, link.room_url, event_id)
        return InvitationResult(message="Invitation sent.", emails_sent=1, invitations_recorded=1)

    # ─── Schedule update ──────────────────────────────────────────────────────

    async def update_course_schedule(
        self,
        course_id: int,
        participant_emails: Optional[List[str]] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        day_codes: Optional[str] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
    ) -> InvitationResult:
        link = self._require_link(course_id)
        if not link.calendar_event_id:
            raise InvalidStateError("The room has no associated calendar event")

        attendees = participant_emails if participant_emails is not None else self.courses.get_roster_emails(course_id)
        if not attendees:
            return InvitationResult(message="No students found for the course.", emails_sent=0)

        start_date = start_date or link.start_date
        end_date = end_date or link.end_date
        day_codes = day_codes or link.day_codes
        start_time = start_time or link.start_time
        end_time = end_time or link.end_time
        if not (start_date and end_date and day_codes and start_time and end_time):
            raise InvalidStateError(f"Course {course_id} has no complete schedule to update the event with")

        window = self._series_window(start_date, end_date, day_codes, start_time, end_time)
        try:
            await self.calendar.update_recurring(
                link.calendar_event_id,
                self._event_details(link),
                list(attendees),
                window.start,
                window.end,
                window.rule,
            )
        except DependencyError:
            logger.exception("Calendar update failed for course %s", course_id)
            raise

        self.courses.update_schedule(course_id, start_date, end_date, day_codes, start_time, end_time)
        return InvitationResult(message="Invitations updated.", emails_sent=len(attendees))

    # ─── Single-session reprogramming ─────────────────────────────────────────

    async def reprogram_session(
        self,
        course_id: int,
        session_number: int,
        original_date: date,
        new_date: date,
    ) -> ReprogramResult:
        """Move one session to ``new_date`` inside a standalone event.

        The series occurrence is cancelled before the replacement is created. If
        creating the replacement fails, the occurrence stays cancelled while the
        session row is still active; calling this again with the same arguments
        finds the occurrence already cancelled and completes the move.
        """
        if new_date == original_date:
            raise ValidationError("The new session date must differ from the original one")
        if self.academic_calendar.is_non_class_day(new_date):
            raise ValidationError(f"{new_date.isoformat()} is not a class day")

        link = self._require_link(course_id)
        if not link.calendar_event_id:
            raise InvalidStateError("The room has no associated calendar event")

        session = self.courses.get_active_session(course_id, session_number)
        if session is None or session.session_date != original_date:
            raise NotFoundError("Session", f"{course_id}/{session_number}@{original_date.isoformat()}")

        template = await self.calendar.get_event(link.calendar_event_id)
        if not isinstance(template.start, datetime) or not isinstance(template.end, datetime):
            raise InvalidStateError(f"Recurring event {link.calendar_event_id} has no time of day")

        cancelled = await self._cancel_original(link.calendar_event_id, session, original_date)

        start, end = move_to_date(template.start, template.end, new_date)
        replacement_id = await self.calendar.create_standalone(
            EventDetails(
                summary=template.summary,
                description=template.description,
                location=template.location,
                attendees=list(template.attendees),
                start=start,
                end=end,
                timezone=template.timezone,
            ),
            notify=False,
        )

        try:
            new_session = self.courses.reprogram_session(
                course_id, session_number, original_date, new_date, replacement_id
            )
        except Exception:
            logger.exception("Could not store reprogrammed session %s of course %s", session_number, course_id)
            await self._discard_event(replacement_id)
            raise
        if new_session is None:
            await self._discard_event(replacement_id)
            raise NotFoundError("Session", f"{course_id}/{session_number}@{original_date.isoformat()}")

        notified = await self._announce_reprogram(link, session_number, original_date, new_date)
        return ReprogramResult(session=new_session, occurrence_cancelled=cancelled, notified=notified)

    async def _cancel_original(self, event_id: str, session: CourseSession, original_date: date) -> bool:
        if session.calendar_event_id:
            # Already moved once: the session lives in its own standalone event
            await self.calendar.delete_event(session.calendar_event_id, notify=False)
            return True

        for occurrence in await self.calendar.list_occurrences(event_id):
            if occurrence.day != original_date:
                continue
            if occurrence.cancelled:
                return False
            await self.calendar.cancel_occurrence(occurrence, notify=False)
            return True

        logger.warning("No occurrence of event %s on %s; reprogramming anyway", event_id, original_date)
        return False

    async def _announce_reprogram(self, link: CourseRoom, number: int, original: date, new: date) -> int:
        body = reprogram_notice(link.room_name, number, original, new, link.room_url)
        subject = f"Class rescheduled: {link.room_name or link.course_id}"
        notified = 0
        for email in self.courses.get_roster_emails(link.course_id):
            try:
                await self.mailer.send_simple(email, subject, body)
                notified += 1
            except Exception:
                logger.exception("Could not notify %s about the rescheduled session", email)
        return notified

    async def _discard_event(self, event_id: str) -> None:
        try:
            await self.calendar.delete_event(event_id, notify=False)
        except Exception:
            logger.exception("Could not remove calendar event %s", event_id)

    # ─── Reconciliation ───────────────────────────────────────────────────────

    async def sync_calendar(self, course_id: int) -> int:
        """Cancel occurrences not backed by an active session. Returns how many were cancelled."""
        link = self._require_link(course_id)
        if not link.calendar_event_id:
            raise InvalidStateError("The room has no associated calendar event")

        if not self.courses.list_sessions(course_id):
            logger.warning("Course %s has no sessions recorded; leaving its calendar untouched", course_id)
            return 0

        active_days = {s.session_date for s in self.courses.list_active_sessions(course_id)}
        cancelled = 0
        for occurrence in await self.calendar.list_occurrences(link.calendar_event_id):
            if occurrence.cancelled or occurrence.day in active_days:
                continue
            try:
                await self.calendar.cancel_occurrence(occurrence, notify=False)
                cancelled += 1
            except DependencyError:
                logger.exception("Could not cancel occurrence %s of course %s", occurrence.id, course_id)

        logger.info("Calendar sync for course %s cancelled %d occurrence(s)", course_id, cancelled)
        return cancelled

    async def sync_all_calendars(self) -> int:
        total = 0
        for course_id in self.courses.courses_with_calendar():
            try:
                total += await self.sync_calendar(course_id)
            except Exception:
                logger.exception("Calendar sync failed for course %s", course_id)
        return total
