"""Error taxonomy shared by services and controllers."""


class RoomSchedulerError(Exception):
    """Base exception for all room scheduler errors."""

    pass


class NotFoundError(RoomSchedulerError):
    """Raised when a course, room, student or session does not exist."""

    def __init__(self, kind: str, identifier):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} '{identifier}' not found")


class InvalidStateError(RoomSchedulerError):
    """Raised when the stored state does not allow the operation (no schedule, no event)."""

    pass


class ValidationError(RoomSchedulerError):
    """Raised when a request is internally inconsistent."""

    pass


class ConfigurationError(RoomSchedulerError):
    """Raised when provider credentials or settings are missing."""

    pass


class DependencyError(RoomSchedulerError):
    """Raised when an external provider is unreachable or rejects a call."""

    pass


class CalendarServiceError(DependencyError):
    def __init__(self, status: int, detail: str):
        self.status = status
        self.detail = detail
        super().__init__(f"Calendar API error {status}: {detail}")


class EmailDeliveryError(DependencyError):
    pass


class RoomCreationError(RoomSchedulerError):
    """Raised when a room could not be stored; nothing was left behind."""

    def __init__(self, message: str = "There was a problem saving the room"):
        super().__init__(message)
