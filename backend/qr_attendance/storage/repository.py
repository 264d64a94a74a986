"""Persistence port for sessions and attendance records."""
from datetime import datetime
from typing import List, Optional

from qr_attendance.domain import AttendanceRecord, Session


class AttendanceRepository:
    """Storage contract shared by the SQL and local adapters.

    Adapters raise StorageUnavailableError when the backend cannot be
    reached and DuplicateAttendanceError when a record for the same
    (session_id, student_id) pair already exists.
    """

    mode = 'abstract'

    def get_session(self, session_id: str) -> Optional[Session]:
        raise NotImplementedError

    def find_sessions(self, subject: str = None, academic_level: str = None,
                      active_only: bool = False) -> List[Session]:
        """Sessions matching the filters, newest first."""
        raise NotImplementedError

    def open_session(self, session: Session) -> int:
        """Deactivate the pair's active sessions and add `session` as one step.

        Returns how many sessions were deactivated. Concurrent calls for the
        same (subject, academic_level) never leave two sessions active.
        """
        raise NotImplementedError

    def set_session_active(self, session_id: str, is_active: bool) -> Optional[Session]:
        raise NotImplementedError

    def add_attendance(self, record: AttendanceRecord, include_attendee: bool = True) -> AttendanceRecord:
        """Atomically append the attendee (when requested) and insert the record."""
        raise NotImplementedError

    def get_record(self, record_id: str) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_records(self, session_id: str = None, student_id: str = None,
                     subject: str = None, since: datetime = None) -> List[AttendanceRecord]:
        """Records matching the filters, newest check-in first."""
        raise NotImplementedError

    def update_record_grade(self, record_id: str, grade_points: float) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def ping(self) -> bool:
        raise NotImplementedError
