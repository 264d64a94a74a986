"""Attendance repository on top of the key-value store (fallback mode)."""
from datetime import datetime
from typing import List, Optional

from qr_attendance.domain import AttendanceRecord, Session
from qr_attendance.errors import DuplicateAttendanceError
from qr_attendance.storage.kv import KeyValueStore
from qr_attendance.storage.repository import AttendanceRepository

SESSION_PREFIX = 'attendance_sessions:'
RECORD_PREFIX = 'attendance_records:'


class LocalAttendanceRepository(AttendanceRepository):
    """Sessions and records kept as JSON documents.

    Record keys are `attendance_records:<session_id>:<student_id>`, so the
    key itself enforces one record per student and session.
    """

    mode = 'local'

    def __init__(self, store: KeyValueStore):
        self.store = store

    @staticmethod
    def _record_key(session_id: str, student_id: str) -> str:
        return f"{RECORD_PREFIX}{session_id}:{student_id}"

    def get_session(self, session_id: str) -> Optional[Session]:
        data = self.store.get(SESSION_PREFIX + session_id)
        return Session.from_storage(data) if data else None

    def find_sessions(self, subject: str = None, academic_level: str = None,
                      active_only: bool = False) -> List[Session]:
        sessions = [Session.from_storage(d) for d in self.store.values(SESSION_PREFIX)]
        if subject:
            sessions = [s for s in sessions if s.subject == subject]
        if academic_level:
            sessions = [s for s in sessions if s.academic_level == academic_level]
        if active_only:
            sessions = [s for s in sessions if s.is_active]
        return sorted(sessions, key=lambda s: s.created_at, reverse=True)

    def open_session(self, session: Session) -> int:
        closed = 0
        with self.store.lock(f"sessions:{session.subject}:{session.academic_level}"):
            for previous in self.find_sessions(session.subject, session.academic_level, active_only=True):
                with self.store.lock(previous.id):
                    current = self.get_session(previous.id)
                    current.is_active = False
                    self.store.set(SESSION_PREFIX + current.id, current.to_storage())
                closed += 1
            self.store.set(SESSION_PREFIX + session.id, session.to_storage())
        return closed

    def set_session_active(self, session_id: str, is_active: bool) -> Optional[Session]:
        with self.store.lock(session_id):
            session = self.get_session(session_id)
            if session is None:
                return None
            session.is_active = is_active
            self.store.set(SESSION_PREFIX + session.id, session.to_storage())
        return session

    def add_attendance(self, record: AttendanceRecord, include_attendee: bool = True) -> AttendanceRecord:
        key = self._record_key(record.session_id, record.student_id)
        with self.store.lock(record.session_id):
            session = self.get_session(record.session_id) if include_attendee else None
            if session is not None and session.has_attendee(record.student_id):
                raise DuplicateAttendanceError()
            if not self.store.set_if_absent(key, record.to_dict()):
                raise DuplicateAttendanceError()
            if session is not None:
                session.attendees.append(record.to_attendee())
                self.store.set(SESSION_PREFIX + session.id, session.to_storage())
        return record

    def get_record(self, record_id: str) -> Optional[AttendanceRecord]:
        for data in self.store.values(RECORD_PREFIX):
            if data['id'] == record_id:
                return AttendanceRecord.from_dict(data)
        return None

    def list_records(self, session_id: str = None, student_id: str = None,
                     subject: str = None, since: datetime = None) -> List[AttendanceRecord]:
        prefix = RECORD_PREFIX + (f"{session_id}:" if session_id else '')
        records = [AttendanceRecord.from_dict(d) for d in self.store.values(prefix)]
        if student_id:
            records = [r for r in records if r.student_id == student_id]
        if subject:
            records = [r for r in records if r.subject_name == subject]
        if since:
            records = [r for r in records if r.check_in_time >= since]
        return sorted(records, key=lambda r: r.check_in_time, reverse=True)

    def update_record_grade(self, record_id: str, grade_points: float) -> Optional[AttendanceRecord]:
        record = self.get_record(record_id)
        if record is None:
            return None
        with self.store.lock(record.session_id):
            updated = record.with_grade(grade_points)
            self.store.set(self._record_key(record.session_id, record.student_id), updated.to_dict())
        return updated

    def ping(self) -> bool:
        return self.store.ping()
