from typing import List

from fastapi import APIRouter, Depends

from .. import schemas
from ..dependencies import get_room_service
from ..services.room_service import RoomService
from .errors import to_http_error

router = APIRouter(prefix="/recordings", tags=["recordings"])


@router.get("/{course_id}", response_model=List[schemas.RecordingOut])
async def get_recordings(
    course_id: int,
    service: RoomService = Depends(get_room_service),
):
    """
    Playback URLs of the recordings made in the course's room, newest first.
    """
    try:
        return service.list_recordings(course_id)
    except Exception as e:
        raise to_http_error(e, "listing the recordings")
