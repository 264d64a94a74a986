"""Models package with all models."""
from .base import BaseModel
from .user import User, UserRole
from .attendance_session import SessionRow, AttendeeRow
from .attendance import AttendanceRecordRow

__all__ = [
    'BaseModel', 'User', 'UserRole',
    'SessionRow', 'AttendeeRow', 'AttendanceRecordRow'
]
