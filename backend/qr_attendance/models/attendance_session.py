"""Attendance session rows and their attendees."""
from qr_attendance import db
from qr_attendance.domain import Attendee, Session
from qr_attendance.models.base import BaseModel


class SessionRow(BaseModel):
    """Persisted attendance session."""

    __tablename__ = 'attendance_sessions'
    __table_args__ = (
        db.Index('ix_sessions_subject_level_active', 'subject', 'academic_level', 'is_active'),
        # At most one active session per pairing
        db.Index(
            'uq_sessions_active_pairing', 'subject', 'academic_level', unique=True,
            sqlite_where=db.text('is_active'), postgresql_where=db.text('is_active'),
        ),
    )

    id = db.Column(db.String(36), primary_key=True)
    subject = db.Column(db.String(255), nullable=False)
    academic_level = db.Column(db.String(100), nullable=False)
    token = db.Column(db.String(128), unique=True, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    closed_at = db.Column(db.DateTime, nullable=True)

    attendees = db.relationship(
        'AttendeeRow',
        backref='session',
        order_by='AttendeeRow.id',
        cascade='all, delete-orphan',
    )

    @classmethod
    def from_domain(cls, session: Session) -> 'SessionRow':
        return cls(
            id=session.id,
            subject=session.subject,
            academic_level=session.academic_level,
            token=session.token,
            created_at=session.created_at,
            expires_at=session.expires_at,
            is_active=session.is_active,
        )

    def to_domain(self) -> Session:
        return Session(
            id=self.id,
            subject=self.subject,
            academic_level=self.academic_level,
            token=self.token,
            created_at=self.created_at,
            expires_at=self.expires_at,
            is_active=self.is_active,
            attendees=[a.to_domain() for a in self.attendees],
        )

    def __repr__(self):
        return f'<SessionRow {self.subject} / {self.academic_level}>'


class AttendeeRow(BaseModel):
    """Student entry inside a session; one per student."""

    __tablename__ = 'session_attendees'
    __table_args__ = (
        db.UniqueConstraint('session_id', 'student_id', name='uq_attendee_session_student'),
    )

    session_id = db.Column(db.String(36), db.ForeignKey('attendance_sessions.id'), nullable=False, index=True)
    student_id = db.Column(db.String(100), nullable=False)
    student_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    scanned_at = db.Column(db.DateTime, nullable=False)
    score = db.Column(db.Float, nullable=False, default=0.0)

    def to_domain(self) -> Attendee:
        return Attendee(
            student_id=self.student_id,
            student_name=self.student_name,
            email=self.email,
            scanned_at=self.scanned_at,
            score=self.score,
        )
