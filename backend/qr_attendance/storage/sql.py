"""Attendance repository on the relational database."""
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from qr_attendance import db
from qr_attendance.domain import AttendanceRecord, Session
from qr_attendance.errors import DuplicateAttendanceError, StorageUnavailableError
from qr_attendance.models.attendance import AttendanceRecordRow
from qr_attendance.models.attendance_session import AttendeeRow, SessionRow
from qr_attendance.storage.repository import AttendanceRepository
from qr_attendance.utils.helpers import utcnow

OPEN_SESSION_ATTEMPTS = 3


class SqlAttendanceRepository(AttendanceRepository):
    """Flask-SQLAlchemy adapter. Must be used inside an application context."""

    mode = 'sql'

    @contextmanager
    def _guard(self) -> Iterator[None]:
        try:
            yield
        except (OperationalError, InterfaceError) as e:
            db.session.rollback()
            raise StorageUnavailableError(f"Database unavailable: {e.orig}") from e

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._guard():
            row = db.session.get(SessionRow, session_id)
            return row.to_domain() if row else None

    def find_sessions(self, subject: str = None, academic_level: str = None,
                      active_only: bool = False) -> List[Session]:
        with self._guard():
            query = SessionRow.query
            if subject:
                query = query.filter_by(subject=subject)
            if academic_level:
                query = query.filter_by(academic_level=academic_level)
            if active_only:
                query = query.filter_by(is_active=True)
            rows = query.order_by(SessionRow.created_at.desc()).all()
            return [row.to_domain() for row in rows]

    def open_session(self, session: Session) -> int:
        for attempt in range(OPEN_SESSION_ATTEMPTS):
            with self._guard():
                try:
                    closed = SessionRow.query.filter_by(
                        subject=session.subject,
                        academic_level=session.academic_level,
                        is_active=True
                    ).update({'is_active': False, 'closed_at': utcnow()}, synchronize_session=False)
                    db.session.add(SessionRow.from_domain(session))
                    db.session.commit()
                    return closed
                except IntegrityError as e:
                    # Another session for the pair was opened concurrently
                    db.session.rollback()
                    if attempt + 1 == OPEN_SESSION_ATTEMPTS:
                        raise StorageUnavailableError(
                            f"Could not open session for {session.subject} / {session.academic_level}"
                        ) from e

    def set_session_active(self, session_id: str, is_active: bool) -> Optional[Session]:
        with self._guard():
            row = db.session.get(SessionRow, session_id)
            if row is None:
                return None
            if row.is_active != is_active:
                row.is_active = is_active
                row.closed_at = None if is_active else utcnow()
                db.session.commit()
            return row.to_domain()

    def add_attendance(self, record: AttendanceRecord, include_attendee: bool = True) -> AttendanceRecord:
        with self._guard():
            try:
                if include_attendee and db.session.get(SessionRow, record.session_id) is not None:
                    attendee = record.to_attendee()
                    db.session.add(AttendeeRow(
                        session_id=record.session_id,
                        student_id=attendee.student_id,
                        student_name=attendee.student_name,
                        email=attendee.email,
                        scanned_at=attendee.scanned_at,
                        score=attendee.score,
                    ))
                db.session.add(AttendanceRecordRow.from_domain(record))
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                raise DuplicateAttendanceError() from e
        return record

    def get_record(self, record_id: str) -> Optional[AttendanceRecord]:
        with self._guard():
            row = db.session.get(AttendanceRecordRow, record_id)
            return row.to_domain() if row else None

    def list_records(self, session_id: str = None, student_id: str = None,
                     subject: str = None, since: datetime = None) -> List[AttendanceRecord]:
        with self._guard():
            query = AttendanceRecordRow.query
            if session_id:
                query = query.filter_by(session_id=session_id)
            if student_id:
                query = query.filter_by(student_id=student_id)
            if subject:
                query = query.filter_by(subject_name=subject)
            if since:
                query = query.filter(AttendanceRecordRow.check_in_time >= since)
            rows = query.order_by(AttendanceRecordRow.check_in_time.desc()).all()
            return [row.to_domain() for row in rows]

    def update_record_grade(self, record_id: str, grade_points: float) -> Optional[AttendanceRecord]:
        with self._guard():
            row = db.session.get(AttendanceRecordRow, record_id)
            if row is None:
                return None
            row.grade_points = grade_points
            db.session.commit()
            return row.to_domain()

    def ping(self) -> bool:
        try:
            db.session.execute(db.select(SessionRow.id).limit(1))
            return True
        except (OperationalError, InterfaceError):
            db.session.rollback()
            return False
