from typing import Optional

from fastapi import HTTPException, status


class ClinicError(HTTPException):
    """Base for errors the scheduling services raise straight to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail: str = "Server error"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(ClinicError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class NotFound(ClinicError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class AlreadyBooked(ClinicError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Timeslot already booked"


class StoreFailure(ClinicError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Server error"


class NotificationFailure(Exception):
    """An email could not be delivered. Never surfaced to HTTP callers."""

    def __init__(self, recipient: str, reason: str):
        super().__init__(f"Failed to notify {recipient}: {reason}")
        self.recipient = recipient
        self.reason = reason
