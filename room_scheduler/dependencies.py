"""Request-scoped service wiring for the routers."""

from fastapi import Depends
from sqlalchemy.orm import Session

from .database import get_academic_db, get_rooms_db
from .services.calendar_service import CalendarService, GoogleCalendarService
from .services.email_service import EmailService
from .services.invitation_service import InvitationService
from .services.room_service import RoomService


def get_calendar_service() -> CalendarService:
    return GoogleCalendarService()


def get_email_service() -> EmailService:
    return EmailService()


def get_invitation_service(
    db: Session = Depends(get_academic_db),
    calendar: CalendarService = Depends(get_calendar_service),
    mailer: EmailService = Depends(get_email_service),
) -> InvitationService:
    return InvitationService(db, calendar, mailer)


def get_room_service(
    rooms_db: Session = Depends(get_rooms_db),
    academic_db: Session = Depends(get_academic_db),
    calendar: CalendarService = Depends(get_calendar_service),
) -> RoomService:
    return RoomService(rooms_db, academic_db, calendar)
