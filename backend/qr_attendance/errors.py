"""Error types raised by the attendance services."""


class AttendanceError(Exception):
    """Base error with the HTTP status the API answers with."""

    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(AttendanceError):
    """Invalid input."""
    status_code = 400


class MalformedPayloadError(AttendanceError):
    """Invalid QR code format."""
    status_code = 400


class SessionNotFoundError(AttendanceError):
    """Session not found. Please ask the instructor to generate a new QR code."""
    status_code = 404


class ExpiredOrInvalidTokenError(AttendanceError):
    """QR code has expired or is no longer valid."""
    status_code = 410


class RecordNotFoundError(AttendanceError):
    """Attendance record not found."""
    status_code = 404


class StorageUnavailableError(AttendanceError):
    """Storage backend is unavailable."""
    status_code = 503


class DuplicateAttendanceError(AttendanceError):
    """Attendance already marked for this session."""
    status_code = 409
