from fastapi import APIRouter, Depends, HTTPException, Response

from .. import schemas
from ..dependencies import get_room_service
from ..services.room_service import RoomService
from .errors import to_http_error

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("", response_model=schemas.RoomOut, status_code=201)
async def create_room(
    payload: schemas.RoomCreate,
    service: RoomService = Depends(get_room_service),
):
    """
    Create a room and, when a course is given, link it to that course.
    """
    try:
        return await service.create_room(payload.name, payload.creator_email, payload.course_id)
    except Exception as e:
        raise to_http_error(e, "creating the room")


@router.delete("/{room_id}", status_code=204)
async def delete_room(
    room_id: str,
    service: RoomService = Depends(get_room_service),
):
    try:
        removed = await service.delete_room(room_id)
    except Exception as e:
        raise to_http_error(e, "deleting the room")
    if not removed:
        raise HTTPException(status_code=404, detail=f"Room '{room_id}' not found")
    return Response(status_code=204)
