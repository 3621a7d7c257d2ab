import logging

from fastapi import HTTPException

from ..exceptions import (
    InvalidStateError,
    NotFoundError,
    RoomCreationError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def to_http_error(exc: Exception, action: str) -> HTTPException:
    """Map a service failure to an HTTP error; unexpected details stay in the log."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidStateError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, RoomCreationError):
        logger.error("Room creation failed: %s", exc)
        return HTTPException(status_code=500, detail=str(exc))
    logger.error("Unexpected error while %s", action, exc_info=exc)
    return HTTPException(status_code=500, detail=f"Internal server error while {action}")
