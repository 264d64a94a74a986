"""Attendance record model."""
from qr_attendance import db
from qr_attendance.domain import AttendanceMethod, AttendanceRecord, AttendanceStatus
from qr_attendance.models.base import BaseModel


class AttendanceRecordRow(BaseModel):
    """Durable check-in record.

    `session_id` is a plain indexed column rather than a foreign key: the
    record outlives whatever happens to the session it points at.
    """

    __tablename__ = 'attendance_records'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'student_id', name='uq_record_session_student'),
    )

    id = db.Column(db.String(36), primary_key=True)
    session_id = db.Column(db.String(36), nullable=False, index=True)
    student_id = db.Column(db.String(100), nullable=False, index=True)
    student_name = db.Column(db.String(255), nullable=False)
    student_email = db.Column(db.String(255), nullable=True)
    subject_name = db.Column(db.String(255), nullable=False, index=True)
    check_in_time = db.Column(db.DateTime, nullable=False)
    method = db.Column(db.Enum(AttendanceMethod), nullable=False, default=AttendanceMethod.QR_SCAN)
    status = db.Column(db.Enum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)
    grade_points = db.Column(db.Float, nullable=False, default=0.0)

    @classmethod
    def from_domain(cls, record: AttendanceRecord) -> 'AttendanceRecordRow':
        return cls(
            id=record.id,
            session_id=record.session_id,
            student_id=record.student_id,
            student_name=record.student_name,
            student_email=record.student_email,
            subject_name=record.subject_name,
            check_in_time=record.check_in_time,
            method=record.method,
            status=record.status,
            grade_points=record.grade_points,
        )

    def to_domain(self) -> AttendanceRecord:
        return AttendanceRecord(
            id=self.id,
            session_id=self.session_id,
            student_id=self.student_id,
            student_name=self.student_name,
            student_email=self.student_email,
            subject_name=self.subject_name,
            check_in_time=self.check_in_time,
            method=self.method,
            status=self.status,
            grade_points=self.grade_points,
        )

    def __repr__(self):
        return f'<AttendanceRecordRow {self.student_id}-{self.session_id}>'
