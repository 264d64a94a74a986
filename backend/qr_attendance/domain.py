"""Attendance domain objects shared by the services and storage adapters."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from qr_attendance.utils.helpers import parse_iso, to_iso


class AttendanceMethod(Enum):
    """How a check-in reached the system."""
    QR_SCAN = 'qr_scan'
    EXTERNAL_SCAN = 'external_scan'


class AttendanceStatus(Enum):
    PRESENT = 'present'


class BackupStatus(Enum):
    """Sync state of a backup entry."""
    PENDING = 'pending'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


@dataclass
class Attendee:
    """A student's presence inside one session."""
    student_id: str
    student_name: str
    email: Optional[str]
    scanned_at: datetime
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'student_id': self.student_id,
            'student_name': self.student_name,
            'email': self.email,
            'scanned_at': to_iso(self.scanned_at),
            'score': self.score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Attendee':
        return cls(
            student_id=data['student_id'],
            student_name=data['student_name'],
            email=data.get('email'),
            scanned_at=parse_iso(data['scanned_at']),
            score=float(data['score']),
        )


@dataclass
class Session:
    """A time-bounded attendance window for one subject and academic level."""
    id: str
    subject: str
    academic_level: str
    token: str
    created_at: datetime
    expires_at: datetime
    is_active: bool = True
    attendees: List[Attendee] = field(default_factory=list)

    def is_expired(self, now: datetime) -> bool:
        """Expired once the clock passes expires_at."""
        return now > self.expires_at

    def is_open(self, now: datetime) -> bool:
        return self.is_active and not self.is_expired(now)

    def has_attendee(self, student_id: str) -> bool:
        return any(a.student_id == student_id for a in self.attendees)

    def to_dict(self, now: datetime = None, include_token: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'subject': self.subject,
            'academic_level': self.academic_level,
            'created_at': to_iso(self.created_at),
            'expires_at': to_iso(self.expires_at),
            'is_active': self.is_open(now) if now else self.is_active,
            'attendee_count': len(self.attendees),
            'attendees': [a.to_dict() for a in self.attendees],
        }
        if include_token:
            data['token'] = self.token
        return data

    def to_storage(self) -> Dict[str, Any]:
        """Full serialisation, token included, for key-value storage."""
        data = self.to_dict(include_token=True)
        data['is_active'] = self.is_active
        del data['attendee_count']
        return data

    @classmethod
    def from_storage(cls, data: Dict[str, Any]) -> 'Session':
        return cls(
            id=data['id'],
            subject=data['subject'],
            academic_level=data['academic_level'],
            token=data['token'],
            created_at=parse_iso(data['created_at']),
            expires_at=parse_iso(data['expires_at']),
            is_active=bool(data['is_active']),
            attendees=[Attendee.from_dict(a) for a in data.get('attendees', [])],
        )


@dataclass
class AttendanceRecord:
    """Durable record of one successful check-in."""
    id: str
    session_id: str
    student_id: str
    student_name: str
    student_email: Optional[str]
    subject_name: str
    check_in_time: datetime
    method: AttendanceMethod
    status: AttendanceStatus
    grade_points: float

    def to_attendee(self) -> Attendee:
        return Attendee(
            student_id=self.student_id,
            student_name=self.student_name,
            email=self.student_email,
            scanned_at=self.check_in_time,
            score=self.grade_points,
        )

    def with_grade(self, grade_points: float) -> 'AttendanceRecord':
        return replace(self, grade_points=grade_points)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'session_id': self.session_id,
            'student_id': self.student_id,
            'student_name': self.student_name,
            'student_email': self.student_email,
            'subject_name': self.subject_name,
            'check_in_time': to_iso(self.check_in_time),
            'method': self.method.value,
            'status': self.status.value,
            'grade_points': self.grade_points,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AttendanceRecord':
        return cls(
            id=data['id'],
            session_id=data['session_id'],
            student_id=data['student_id'],
            student_name=data['student_name'],
            student_email=data.get('student_email'),
            subject_name=data['subject_name'],
            check_in_time=parse_iso(data['check_in_time']),
            method=AttendanceMethod(data['method']),
            status=AttendanceStatus(data['status']),
            grade_points=float(data['grade_points']),
        )


@dataclass(frozen=True)
class QRPayload:
    """Decoded contents of an attendance QR code."""
    session_id: str
    token: str
    subject: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class StudentIdentity:
    """Who is checking in. `subject` is the subject the student selected, if any."""
    id: str
    name: str
    email: Optional[str] = None
    subject: Optional[str] = None


@dataclass
class MarkResult:
    """Outcome of a check-in attempt."""
    success: bool
    already_marked: bool = False
    record: Optional[AttendanceRecord] = None
    reason: Optional[str] = None
    method: str = 'database'

    @property
    def message(self) -> str:
        if self.already_marked:
            return 'You have already marked attendance for this session'
        if self.success and self.method == 'local_fallback':
            return 'Attendance saved locally and will be synced when the database is available'
        if self.success:
            return 'Attendance recorded successfully'
        return self.reason or 'Attendance could not be recorded'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'already_marked': self.already_marked,
            'method': self.method,
            'message': self.message,
            'record': self.record.to_dict() if self.record else None,
        }


@dataclass
class BackupEntry:
    """Mirror of an attendance record held in the secondary store."""
    key: str
    record: AttendanceRecord
    include_attendee: bool
    status: BackupStatus
    created_at: datetime
    retry_count: int = 0
    last_error: Optional[str] = None
    synced_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'record': self.record.to_dict(),
            'include_attendee': self.include_attendee,
            'status': self.status.value,
            'created_at': to_iso(self.created_at),
            'retry_count': self.retry_count,
            'last_error': self.last_error,
            'synced_at': to_iso(self.synced_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BackupEntry':
        return cls(
            key=data['key'],
            record=AttendanceRecord.from_dict(data['record']),
            include_attendee=bool(data.get('include_attendee')),
            status=BackupStatus(data['status']),
            created_at=parse_iso(data['created_at']),
            retry_count=int(data.get('retry_count', 0)),
            last_error=data.get('last_error'),
            synced_at=parse_iso(data.get('synced_at')),
        )


@dataclass
class SyncResult:
    """Aggregate counts of a backup sync pass. Partial failure is reported here."""
    total: int = 0
    successful: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return self.failed > 0 and self.successful > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total': self.total,
            'successful': self.successful,
            'failed': self.failed,
            'errors': self.errors,
            'partial_failure': self.partial_failure,
        }
