"""Room lifecycle across the room store and the academic store.

There is no transaction spanning both stores. Teardown deletes the
authoritative record first and then clears references to it; each step can be
repeated safely by the caller.
"""

import logging
from typing import List

from sqlalchemy.orm import Session

from .. import config
from ..exceptions import NotFoundError, RoomCreationError
from ..schemas import RecordingOut, RoomOut
from ..utils.identifiers import new_friendly_id, new_meeting_id, new_record_id, random_password
from .calendar_service import CalendarService
from .course_repository import CourseRepository
from .room_repository import RoomRepository

logger = logging.getLogger(__name__)


def room_join_url(friendly_id: str) -> str:
    return f"{config.PUBLIC_URL}/rooms/{friendly_id}/join"


def playback_url(record_id: str) -> str:
    return f"{config.PUBLIC_URL}/playback/presentation/2.3/{record_id}"


class RoomService:
    def __init__(self, rooms_db: Session, academic_db: Session, calendar: CalendarService):
        self.rooms = RoomRepository(rooms_db)
        self.courses = CourseRepository(academic_db)
        self.calendar = calendar

    async def create_room(self, name: str, creator_email: str, course_id=None) -> RoomOut:
        meeting_id = new_meeting_id()
        friendly_id = new_friendly_id()
        moderator_key = random_password(8)
        viewer_key = random_password(8)

        try:
            room_id = self.rooms.create_room(
                name, meeting_id, friendly_id, moderator_key, viewer_key, creator_email
            )
        except Exception as exc:
            logger.exception("Could not create room '%s' for %s", name, creator_email)
            raise RoomCreationError() from exc

        room = RoomOut(
            room_id=room_id,
            name=name,
            room_url=room_join_url(friendly_id),
            moderator_key=moderator_key,
            viewer_key=viewer_key,
            meeting_id=meeting_id,
            friendly_id=friendly_id,
            record_id=new_record_id(meeting_id),
        )

        if course_id is not None:
            try:
                self.courses.save_room_link(
                    course_id,
                    room_id=room.room_id,
                    room_name=room.name,
                    room_url=room.room_url,
                    moderator_key=room.moderator_key,
                    viewer_key=room.viewer_key,
                    meeting_id=room.meeting_id,
                    friendly_id=room.friendly_id,
                    record_id=room.record_id,
                )
            except Exception as exc:
                logger.exception("Could not link room %s to course %s; removing the room", room_id, course_id)
                self.rooms.delete_room(room_id)
                raise RoomCreationError() from exc

        logger.info("Created room %s (%s)", room_id, friendly_id)
        return room

    async def _delete_events(self, event_ids: List[str], owner: str) -> None:
        """Best-effort removal; a provider failure never stops the teardown."""
        for event_id in event_ids:
            try:
                await self.calendar.delete_event(event_id)
                logger.info("Deleted calendar event %s of %s", event_id, owner)
            except Exception:
                logger.exception("Could not delete calendar event %s of %s; teardown continues", event_id, owner)

    async def delete_room(self, room_id: str) -> bool:
        """Delete the room; report whether a room row was removed."""
        course_ids = self.courses.course_ids_for_room(room_id)

        event_ids = []
        own_event = self.rooms.get_calendar_event_id(room_id)
        if own_event:
            event_ids.append(own_event)
        candidates = self.courses.calendar_ids_for_room(room_id)
        for course_id in course_ids:
            candidates += self.courses.session_calendar_ids(course_id)
        for event_id in candidates:
            if event_id not in event_ids:
                event_ids.append(event_id)

        await self._delete_events(event_ids, f"room {room_id}")

        removed = self.rooms.delete_room(room_id)

        # Runs even when the row was already gone so a retried delete clears leftovers
        unlinked = self.courses.unlink_room(room_id)
        if unlinked:
            logger.info("Cleared room %s from %d course(s)", room_id, unlinked)
        for course_id in course_ids:
            self.courses.clear_session_calendar_ids(course_id)
        return removed

    async def delete_course(self, course_id: int) -> bool:
        logger.info("Deleting course %s", course_id)

        event_ids = []
        link = self.courses.get_course_room(course_id)
        if link is not None and link.calendar_event_id:
            event_ids.append(link.calendar_event_id)
        candidates = [i.calendar_event_id for i in self.courses.list_invitations(course_id)]
        candidates += self.courses.session_calendar_ids(course_id)
        for event_id in candidates:
            if event_id and event_id not in event_ids:
                event_ids.append(event_id)

        await self._delete_events(event_ids, f"course {course_id}")

        deleted = self.courses.delete_invitations(course_id)
        logger.info("Deleted %d invitation(s) of course %s", deleted, course_id)
        self.courses.clear_session_calendar_ids(course_id)

        removed = self.courses.delete_course(course_id)
        if not removed:
            logger.warning("Course %s was not found", course_id)
        return removed

    def list_recordings(self, course_id: int) -> List[RecordingOut]:
        link = self.courses.get_course_room(course_id)
        if link is None or not link.room_id:
            raise NotFoundError("Course", course_id)
        return [
            RecordingOut(
                record_id=rec.record_id,
                created_at=rec.created_at.strftime("%Y-%m-%d"),
                playback_url=playback_url(rec.record_id),
            )
            for rec in self.rooms.list_recordings(link.room_id)
        ]
