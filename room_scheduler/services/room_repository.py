"""Room store access. Room creation and deletion run in a single transaction."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..exceptions import NotFoundError
from ..models import Format, Recording, Room, RoomMeetingOption, SharedAccess, User

logger = logging.getLogger(__name__)

MODERATOR_KEY = "moderator_key"
VIEWER_KEY = "viewer_key"

# Option ids of the meeting-options catalogue and the value each new room starts with
DEFAULT_MEETING_OPTIONS = [
    ("99216802-f366-4919-bc4e-925b04749790", "false"),
    ("114d9563-9c30-41f0-b9ac-864f49e51881", "true"),
    ("b9f32073-cef4-4450-927b-0262f35114ac", "false"),
    ("c825fe4c-b0d9-4382-9007-6b3976ca3ec3", "false"),
    ("8e9aef23-838b-4685-ab4a-fe1212f4e23a", "true"),
    ("788e5166-e587-4fb7-b973-bdf820268a72", "MODERATOR_CODE_VIEWER_CODE"),
    ("c0c811cb-0f8f-46f2-a7ae-7603da3d2a10", ""),
    ("c04c2d89-4a10-4811-ac98-5804f94918c1", MODERATOR_KEY),
    ("18c3d4ea-5098-419b-8e08-27773ae82df1", VIEWER_KEY),
    ("cec29aa7-7597-4a48-94e3-9a74f595be40", "false"),
]


class RoomRepository:
    def __init__(self, db: Session):
        self.db = db

    def create_room(
        self,
        name: str,
        meeting_id: str,
        friendly_id: str,
        moderator_key: str,
        viewer_key: str,
        creator_email: str,
        calendar_event_id: Optional[str] = None,
    ) -> str:
        """Insert the room and its default options; nothing is kept if any step fails."""
        try:
            owner = self.db.query(User).filter(User.email == creator_email).first()
            if owner is None:
                raise NotFoundError("User", creator_email)

            timestamp = datetime.utcnow()
            room = Room(
                name=name,
                meeting_id=meeting_id,
                friendly_id=friendly_id,
                user_id=owner.id,
                calendar_event_id=calendar_event_id,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self.db.add(room)
            self.db.flush()

            secrets = {MODERATOR_KEY: moderator_key, VIEWER_KEY: viewer_key}
            for option_id, value in DEFAULT_MEETING_OPTIONS:
                self.db.add(
                    RoomMeetingOption(
                        room_id=room.id,
                        meeting_option_id=option_id,
                        value=secrets.get(value, value),
                        created_at=timestamp,
                        updated_at=timestamp,
                    )
                )
            self.db.commit()
            return room.id
        except Exception:
            self.db.rollback()
            raise

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.db.get(Room, room_id)

    def get_calendar_event_id(self, room_id: str) -> Optional[str]:
        room = self.db.get(Room, room_id)
        return room.calendar_event_id if room else None

    def delete_room(self, room_id: str) -> bool:
        """Delete the room with its options, recordings, formats and shared accesses."""
        try:
            self.db.query(RoomMeetingOption).filter(RoomMeetingOption.room_id == room_id).delete(
                synchronize_session=False
            )
            recording_ids = [
                row[0] for row in self.db.query(Recording.id).filter(Recording.room_id == room_id).all()
            ]
            if recording_ids:
                self.db.query(Format).filter(Format.recording_id.in_(recording_ids)).delete(
                    synchronize_session=False
                )
            self.db.query(Recording).filter(Recording.room_id == room_id).delete(synchronize_session=False)
            self.db.query(SharedAccess).filter(SharedAccess.room_id == room_id).delete(synchronize_session=False)
            removed = self.db.query(Room).filter(Room.id == room_id).delete(synchronize_session=False)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception("Error deleting room %s", room_id)
            raise
        return removed > 0

    def list_recordings(self, room_id: str) -> List[Recording]:
        return (
            self.db.query(Recording)
            .filter(Recording.room_id == room_id)
            .order_by(Recording.created_at.desc())
            .all()
        )
