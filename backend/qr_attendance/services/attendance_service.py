"""Attendance recording: QR scan validation, external check-ins and grades."""
import hmac
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, List, Optional

from qr_attendance.domain import (
    AttendanceMethod, AttendanceRecord, AttendanceStatus, MarkResult, StudentIdentity
)
from qr_attendance.errors import (
    DuplicateAttendanceError, ExpiredOrInvalidTokenError, RecordNotFoundError,
    SessionNotFoundError, StorageUnavailableError, ValidationError
)
from qr_attendance.services.backup_service import BackupBridge
from qr_attendance.services.events import ATTENDANCE_RECORDED, EventPublisher
from qr_attendance.services.qr_service import QRService
from qr_attendance.services.session_store import SessionStore
from qr_attendance.storage.repository import AttendanceRepository
from qr_attendance.utils.helpers import utcnow
from qr_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)


class AttendanceService:
    """Validates scans against the session store and writes attendance.

    The duplicate check and the attendee/record writes happen in a single
    repository call, so two concurrent scans by one student cannot both
    succeed.
    """

    def __init__(self, sessions: SessionStore, repository: AttendanceRepository,
                 backup: BackupBridge, events: EventPublisher,
                 default_score: float = 10.0, max_score: float = 100.0,
                 clock: Callable[[], datetime] = utcnow):
        self.sessions = sessions
        self.repository = repository
        self.backup = backup
        self.events = events
        self.default_score = default_score
        self.max_score = max_score
        self.clock = clock

    def mark_attendance(self, payload: Any, student: StudentIdentity) -> MarkResult:
        """Check a student in from a scanned QR payload.

        Raises MalformedPayloadError, SessionNotFoundError or
        ExpiredOrInvalidTokenError; a repeated scan is reported through
        `MarkResult.already_marked`.
        """
        qr_data = QRService.decode(payload)
        student_id = Validator.require_text(student.id, 'student_id')
        student_name = Validator.require_text(student.name, 'student_name')

        session = self.sessions.get_session(qr_data.session_id)
        if session is None:
            raise SessionNotFoundError()

        if not hmac.compare_digest(qr_data.token.encode(), session.token.encode()):
            raise ExpiredOrInvalidTokenError("Invalid QR code token")
        if not session.is_active:
            raise ExpiredOrInvalidTokenError("Session is no longer active")
        now = self.clock()
        if session.is_expired(now):
            raise ExpiredOrInvalidTokenError("QR code has expired")

        if student.subject and student.subject != session.subject:
            raise ValidationError(
                f"QR code is for {session.subject}, but you selected {student.subject}"
            )

        record = AttendanceRecord(
            id=str(uuid.uuid4()),
            session_id=session.id,
            student_id=student_id,
            student_name=student_name,
            student_email=student.email,
            subject_name=session.subject,
            check_in_time=now,
            method=AttendanceMethod.QR_SCAN,
            status=AttendanceStatus.PRESENT,
            grade_points=self.default_score,
        )
        return self._store(record, include_attendee=True)

    def record_external(self, session_id: str, student_id: str, student_name: str = None,
                        student_email: str = None, subject: str = None) -> MarkResult:
        """Record a check-in arriving through the external scan ingress."""
        if not session_id or not student_id:
            raise ValidationError("Missing required fields")

        session = self.sessions.get_session(str(session_id))
        record = AttendanceRecord(
            id=str(uuid.uuid4()),
            session_id=str(session_id),
            student_id=str(student_id),
            student_name=student_name or 'Unknown Student',
            student_email=student_email or 'unknown@example.com',
            subject_name=subject or (session.subject if session else 'Unknown Subject'),
            check_in_time=self.clock(),
            method=AttendanceMethod.EXTERNAL_SCAN,
            status=AttendanceStatus.PRESENT,
            grade_points=self.default_score,
        )
        return self._store(record, include_attendee=session is not None)

    def _store(self, record: AttendanceRecord, include_attendee: bool) -> MarkResult:
        method = 'database'
        try:
            self.repository.add_attendance(record, include_attendee=include_attendee)
        except DuplicateAttendanceError:
            logger.info("Student %s already marked in session %s", record.student_id, record.session_id)
            return MarkResult(success=False, already_marked=True, reason=DuplicateAttendanceError().message)
        except StorageUnavailableError as e:
            logger.warning("Primary store unavailable (%s), using local fallback", e.message)
            if not self.backup.enqueue_pending(record, include_attendee=include_attendee):
                return MarkResult(success=False, already_marked=True,
                                  reason=DuplicateAttendanceError().message, method='local_fallback')
            method = 'local_fallback'

        logger.info("Recorded attendance for %s in session %s via %s",
                    record.student_id, record.session_id, method)
        self.events.publish(ATTENDANCE_RECORDED, {
            'session_id': record.session_id,
            'student_name': record.student_name,
            'subject_name': record.subject_name,
            'method': method,
            'record': record.to_dict(),
        })
        return MarkResult(success=True, record=record, method=method)

    def override_grade(self, record_id: str, grade_points: Any) -> AttendanceRecord:
        """Administrator grade override, the only change a record accepts."""
        grade_points = Validator.require_number(grade_points, 'grade_points', 0, self.max_score)
        record = self.repository.update_record_grade(record_id, float(grade_points))
        if record is None:
            raise RecordNotFoundError()
        logger.info("Grade for record %s set to %s", record_id, grade_points)
        return record

    def list_records(self, session_id: str = None, student_id: str = None,
                     subject: str = None, since: datetime = None) -> List[AttendanceRecord]:
        return self.repository.list_records(
            session_id=session_id, student_id=student_id, subject=subject, since=since
        )

    def get_record(self, record_id: str) -> Optional[AttendanceRecord]:
        return self.repository.get_record(record_id)
