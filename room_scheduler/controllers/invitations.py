from fastapi import APIRouter, Depends

from .. import schemas
from ..dependencies import get_invitation_service
from ..services.invitation_service import InvitationService
from .errors import to_http_error

router = APIRouter(prefix="/invitations", tags=["invitations"])


@router.post("/{course_id}", response_model=schemas.InvitationResult)
async def send_course_invitations(
    course_id: int,
    service: InvitationService = Depends(get_invitation_service),
):
    """
    Invite every enrolled student; students already invited get a reminder.
    """
    try:
        return await service.send_course_invitations(course_id)
    except Exception as e:
        raise to_http_error(e, "sending the invitations")


@router.post("/individual/{student_id}/{course_id}", response_model=schemas.InvitationResult)
async def send_individual_invitation(
    student_id: str,
    course_id: int,
    service: InvitationService = Depends(get_invitation_service),
):
    try:
        return await service.send_individual_invitation(course_id, student_id)
    except Exception as e:
        raise to_http_error(e, "sending the invitation")


@router.put("/{course_id}", response_model=schemas.InvitationResult)
async def update_invitations(
    course_id: int,
    payload: schemas.ScheduleUpdate,
    service: InvitationService = Depends(get_invitation_service),
):
    """
    Rewrite the course's recurring event; omitted fields keep the stored schedule.
    """
    try:
        return await service.update_course_schedule(
            course_id,
            participant_emails=payload.participant_emails,
            start_date=payload.start_date,
            end_date=payload.end_date,
            day_codes=payload.day_codes,
            start_time=payload.start_time,
            end_time=payload.end_time,
        )
    except Exception as e:
        raise to_http_error(e, "updating the invitations")
