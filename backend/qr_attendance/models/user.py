"""User model for authentication and authorization."""
from enum import Enum

from werkzeug.security import check_password_hash, generate_password_hash

from qr_attendance import db
from qr_attendance.models.base import BaseModel


class UserRole(Enum):
    """User roles enumeration."""
    STUDENT = 'student'
    INSTRUCTOR = 'instructor'
    ADMIN = 'admin'
    SUPER_ADMIN = 'super_admin'


class User(BaseModel):
    """User model for all system users."""

    __tablename__ = 'users'

    # Basic Information
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    student_id = db.Column(db.String(50), unique=True, nullable=True, index=True)
    academic_level = db.Column(db.String(100), nullable=True)

    role = db.Column(db.Enum(UserRole), nullable=False, default=UserRole.STUDENT)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime, nullable=True)
    failed_login_attempts = db.Column(db.Integer, default=0)

    def set_password(self, password: str) -> None:
        """Set user password with hashing."""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Check if provided password matches user's password."""
        return check_password_hash(self.password_hash, password)

    def is_instructor(self) -> bool:
        """Instructors and above can run attendance sessions."""
        return self.role in [UserRole.INSTRUCTOR, UserRole.ADMIN, UserRole.SUPER_ADMIN]

    def is_admin(self) -> bool:
        return self.role in [UserRole.ADMIN, UserRole.SUPER_ADMIN]

    def is_student(self) -> bool:
        """Check if user is a student."""
        return self.role == UserRole.STUDENT

    @property
    def attendance_id(self) -> str:
        """Identifier used on attendance records."""
        return self.student_id or str(self.id)

    def to_dict(self, exclude: list = None) -> dict:
        """Convert to dictionary excluding sensitive data."""
        default_exclude = ['password_hash', 'failed_login_attempts']
        exclude = (exclude or []) + default_exclude

        result = super().to_dict(exclude=exclude)
        result['role'] = self.role.value if self.role else None

        return result

    def __repr__(self) -> str:
        return f'<User {self.email}>'
