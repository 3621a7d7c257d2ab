from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response

from .. import schemas
from ..dependencies import get_invitation_service, get_room_service
from ..services.invitation_service import InvitationService
from ..services.room_service import RoomService
from .errors import to_http_error

router = APIRouter(prefix="/courses", tags=["courses"])


@router.delete("/{course_id}", status_code=204)
async def delete_course(
    course_id: int,
    service: RoomService = Depends(get_room_service),
):
    try:
        removed = await service.delete_course(course_id)
    except Exception as e:
        raise to_http_error(e, "deleting the course")
    if not removed:
        raise HTTPException(status_code=404, detail=f"Course '{course_id}' not found")
    return Response(status_code=204)


@router.get("/{course_id}/sessions", response_model=List[schemas.SessionOut])
def list_sessions(
    course_id: int,
    service: InvitationService = Depends(get_invitation_service),
):
    return service.courses.list_sessions(course_id)


@router.post("/{course_id}/sessions/reprogram", response_model=schemas.ReprogramOut)
async def reprogram_session(
    course_id: int,
    payload: schemas.SessionReprogram,
    service: InvitationService = Depends(get_invitation_service),
):
    """
    Move one session to another date, keeping the rest of the weekly series.
    """
    try:
        result = await service.reprogram_session(
            course_id, payload.session_number, payload.original_date, payload.new_date
        )
    except Exception as e:
        raise to_http_error(e, "reprogramming the session")
    return schemas.ReprogramOut(
        session=schemas.SessionOut.model_validate(result.session),
        occurrence_cancelled=result.occurrence_cancelled,
        notified=result.notified,
    )


@router.post("/{course_id}/calendar/sync", response_model=schemas.SyncOut)
async def sync_calendar(
    course_id: int,
    service: InvitationService = Depends(get_invitation_service),
):
    try:
        cancelled = await service.sync_calendar(course_id)
    except Exception as e:
        raise to_http_error(e, "synchronizing the calendar")
    return schemas.SyncOut(course_id=course_id, cancelled=cancelled, checked_at=datetime.utcnow())
