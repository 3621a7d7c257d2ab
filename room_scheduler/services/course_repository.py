"""Academic store access: rosters, course-room links, invitations and sessions."""

import logging
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from .. import config
from ..models import (
    SESSION_NORMAL,
    SESSION_SUSPENDED,
    CourseRoom,
    CourseSession,
    CourseTimetable,
    Enrollment,
    Invitation,
    Student,
)

logger = logging.getLogger(__name__)

ROOM_FIELDS = (
    "room_id",
    "room_name",
    "room_url",
    "moderator_key",
    "viewer_key",
    "meeting_id",
    "friendly_id",
    "record_id",
)


class CourseRepository:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self):
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # --- Course-room links ---

    def get_course_room(self, course_id: int) -> Optional[CourseRoom]:
        return self.db.get(CourseRoom, course_id)

    def save_room_link(self, course_id: int, **room_fields) -> CourseRoom:
        """Insert or refresh the room fields of a link, keeping its schedule."""
        link = self.db.get(CourseRoom, course_id)
        if link is None:
            link = CourseRoom(course_id=course_id)
            self.db.add(link)
        for name in ROOM_FIELDS:
            if name in room_fields:
                setattr(link, name, room_fields[name])
        self._commit()
        self.db.refresh(link)
        return link

    def set_calendar_event_id(self, course_id: int, event_id: Optional[str]) -> None:
        link = self.db.get(CourseRoom, course_id)
        if link is None:
            return
        link.calendar_event_id = event_id
        self._commit()

    def update_schedule(
        self,
        course_id: int,
        start_date: date,
        end_date: date,
        day_codes: str,
        start_time: time,
        end_time: time,
    ) -> None:
        link = self.db.get(CourseRoom, course_id)
        if link is None:
            return
        link.start_date = start_date
        link.end_date = end_date
        link.day_codes = day_codes
        link.start_time = start_time
        link.end_time = end_time
        self._commit()

    def pull_schedule_from_timetable(self, course_id: int) -> bool:
        """Copy the academic timetable onto the link. Returns False if there is none."""
        timetable = self.db.get(CourseTimetable, course_id)
        link = self.db.get(CourseRoom, course_id)
        if timetable is None or link is None:
            return False
        self.update_schedule(
            course_id,
            timetable.start_date,
            timetable.end_date,
            timetable.day_codes,
            timetable.start_time,
            timetable.end_time,
        )
        return True

    def unlink_room(self, room_id: str) -> int:
        """Clear every link pointing at ``room_id``; the schedule stays."""
        links = self.db.query(CourseRoom).filter(CourseRoom.room_id == room_id).all()
        for link in links:
            for name in ROOM_FIELDS:
                setattr(link, name, None)
            link.calendar_event_id = None
        self._commit()
        return len(links)

    def calendar_ids_for_room(self, room_id: str) -> List[str]:
        rows = (
            self.db.query(CourseRoom.calendar_event_id)
            .filter(CourseRoom.room_id == room_id, CourseRoom.calendar_event_id.isnot(None))
            .all()
        )
        return [row[0] for row in rows]

    def course_ids_for_room(self, room_id: str) -> List[int]:
        rows = self.db.query(CourseRoom.course_id).filter(CourseRoom.room_id == room_id).all()
        return [row[0] for row in rows]

    def courses_with_calendar(self) -> List[int]:
        rows = self.db.query(CourseRoom.course_id).filter(CourseRoom.calendar_event_id.isnot(None)).all()
        return [row[0] for row in rows]

    def delete_course(self, course_id: int) -> bool:
        deleted = self.db.query(CourseRoom).filter(CourseRoom.course_id == course_id).delete()
        self._commit()
        return deleted > 0

    # --- Roster ---

    def _roster_query(self, course_id: int):
        return (
            self.db.query(Student.id, Student.email)
            .join(Enrollment, Enrollment.student_id == Student.id)
            .filter(
                Enrollment.course_id == course_id,
                Enrollment.active.is_(True),
                Enrollment.record_type.notin_(config.EXCLUDED_RECORD_TYPES),
            )
            .order_by(Student.id)
        )

    def get_roster(self, course_id: int) -> List[Tuple[str, str]]:
        return [(student_id, email) for student_id, email in self._roster_query(course_id).all()]

    def get_roster_emails(self, course_id: int) -> List[str]:
        return [email for _, email in self.get_roster(course_id)]

    def get_student_email(self, course_id: int, student_id: str) -> Optional[str]:
        row = self._roster_query(course_id).filter(Student.id == student_id).first()
        return row[1] if row else None

    # --- Invitations ---

    def get_invitation(self, course_id: int, student_id: str) -> Optional[Invitation]:
        return (
            self.db.query(Invitation)
            .filter(Invitation.course_id == course_id, Invitation.student_id == student_id)
            .first()
        )

    def save_invitation(
        self,
        course_id: int,
        student_id: str,
        url: str,
        calendar_event_id: Optional[str] = None,
    ) -> Invitation:
        invitation = self.get_invitation(course_id, student_id)
        if invitation is None:
            invitation = Invitation(
                course_id=course_id,
                student_id=student_id,
                created_at=datetime.utcnow(),
            )
            self.db.add(invitation)
        invitation.url = url
        invitation.calendar_event_id = calendar_event_id
        self._commit()
        return invitation

    def list_invitations(self, course_id: int) -> List[Invitation]:
        return self.db.query(Invitation).filter(Invitation.course_id == course_id).all()

    def delete_invitations(self, course_id: int) -> int:
        deleted = self.db.query(Invitation).filter(Invitation.course_id == course_id).delete()
        self._commit()
        return deleted

    # --- Sessions ---

    def list_sessions(self, course_id: int) -> List[CourseSession]:
        return (
            self.db.query(CourseSession)
            .filter(CourseSession.course_id == course_id)
            .order_by(CourseSession.session_date, CourseSession.session_number, CourseSession.id)
            .all()
        )

    def list_active_sessions(self, course_id: int) -> List[CourseSession]:
        return (
            self.db.query(CourseSession)
            .filter(CourseSession.course_id == course_id, CourseSession.status == SESSION_NORMAL)
            .order_by(CourseSession.session_date)
            .all()
        )

    def get_active_session(self, course_id: int, session_number: int) -> Optional[CourseSession]:
        return (
            self.db.query(CourseSession)
            .filter(
                CourseSession.course_id == course_id,
                CourseSession.session_number == session_number,
                CourseSession.status == SESSION_NORMAL,
            )
            .first()
        )

    def session_calendar_ids(self, course_id: int) -> List[str]:
        """Standalone events that rescheduled sessions of the course point at."""
        rows = (
            self.db.query(CourseSession.calendar_event_id)
            .filter(CourseSession.course_id == course_id, CourseSession.calendar_event_id.isnot(None))
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def clear_session_calendar_ids(self, course_id: int) -> int:
        cleared = (
            self.db.query(CourseSession)
            .filter(CourseSession.course_id == course_id, CourseSession.calendar_event_id.isnot(None))
            .update({"calendar_event_id": None}, synchronize_session="fetch")
        )
        self._commit()
        return cleared

    def reprogram_session(
        self,
        course_id: int,
        session_number: int,
        original_date: date,
        new_date: date,
        calendar_event_id: Optional[str],
    ) -> Optional[CourseSession]:
        """Suspend the active row and insert its replacement, in one commit.

        Returns the new row, or None if no active row matched.
        """
        suspended = (
            self.db.query(CourseSession)
            .filter(
                CourseSession.course_id == course_id,
                CourseSession.session_number == session_number,
                CourseSession.session_date == original_date,
                CourseSession.status == SESSION_NORMAL,
            )
            .update({"status": SESSION_SUSPENDED, "moved_to": new_date}, synchronize_session="fetch")
        )
        if not suspended:
            self.db.rollback()
            return None

        replacement = CourseSession(
            course_id=course_id,
            session_number=session_number,
            session_date=new_date,
            status=SESSION_NORMAL,
            calendar_event_id=calendar_event_id,
        )
        self.db.add(replacement)
        self._commit()
        self.db.refresh(replacement)
        return replacement
