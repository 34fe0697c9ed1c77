from typing import Optional


class RoomError(Exception):
    """Base class for failures reported back to the requesting connection."""

    message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidToken(RoomError):
    message = "Invalid access ID"


class RoomNotFound(RoomError):
    message = "Room not found"


class InsufficientAccess(RoomError):
    message = "Insufficient access level"


class TimerNotFound(RoomError):
    message = "Timer not found"


class TimerAlreadyExists(RoomError):
    message = "Timer already exists"


class MalformedRequest(RoomError):
    """Undecodable payload or unknown message type. Never replied to."""

    message = "Malformed request"
