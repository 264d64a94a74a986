"""Authentication service for user management."""
import logging
from typing import Optional, Tuple

from flask_jwt_extended import create_access_token, create_refresh_token

from qr_attendance import core, db
from qr_attendance.catalog import ACADEMIC_LEVELS
from qr_attendance.errors import StorageUnavailableError
from qr_attendance.models.user import User, UserRole
from qr_attendance.utils.helpers import to_iso, utcnow
from qr_attendance.utils.validators import Validator

logger = logging.getLogger(__name__)

CURRENT_USER_PREFIX = 'current_user:'


class AuthService:
    @staticmethod
    def login(email: str, password: str) -> Tuple[Optional[dict], Optional[str]]:
        """Authenticate user and return tokens."""
        if not email or not password:
            return None, "Email and password are required"

        if not Validator.validate_email(email):
            return None, "Invalid email format"

        user = User.query.filter_by(email=email.lower().strip()).first()

        if not user:
            return None, "Invalid email or password"

        if not user.check_password(password):
            user.failed_login_attempts = (user.failed_login_attempts or 0) + 1
            db.session.commit()
            return None, "Invalid email or password"

        if not user.is_active:
            return None, "Account is deactivated"

        # Reset failed attempts and update last login
        user.failed_login_attempts = 0
        user.last_login = utcnow()
        db.session.commit()

        AuthService.remember_session(user)

        return {
            "access_token": create_access_token(identity=str(user.id)),
            "refresh_token": create_refresh_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None

    @staticmethod
    def register_student(email: str, password: str, name: str, student_id: str = None,
                         academic_level: str = None) -> Tuple[Optional[dict], Optional[str]]:
        """Register a new student account."""
        if not all([email, password, name]):
            return None, "Email, password and name are required"

        if not Validator.validate_email(email):
            return None, "Invalid email format"

        password_check = Validator.validate_password(password)
        if not password_check['is_valid']:
            return None, password_check['errors'][0]

        name_check = Validator.validate_name(name)
        if not name_check['is_valid']:
            return None, name_check['errors'][0]

        if academic_level and academic_level not in ACADEMIC_LEVELS:
            return None, "Unknown academic level"

        email = email.lower().strip()
        if User.query.filter_by(email=email).first():
            return None, "Email already exists"

        if student_id and User.query.filter_by(student_id=student_id).first():
            return None, "Student ID already registered"

        user = User(
            email=email,
            name=name.strip(),
            student_id=student_id or None,
            academic_level=academic_level or None,
            role=UserRole.STUDENT
        )
        user.set_password(password)
        user.save()

        return user.to_dict(), None

    @staticmethod
    def refresh_token(user_id) -> Tuple[Optional[dict], Optional[str]]:
        """Generate new access token."""
        user = db.session.get(User, int(user_id))
        if not user or not user.is_active:
            return None, "User not found or inactive"

        return {
            "access_token": create_access_token(identity=str(user.id)),
            "user": user.to_dict()
        }, None

    @staticmethod
    def remember_session(user: User) -> None:
        """Keep the current-user session object in the local store."""
        try:
            core.store.set(f"{CURRENT_USER_PREFIX}{user.id}", {
                'user_id': user.id,
                'email': user.email,
                'name': user.name,
                'role': user.role.value,
                'student_id': user.attendance_id,
                'logged_in_at': to_iso(utcnow()),
            })
        except StorageUnavailableError:
            logger.warning("Could not store session for user %s", user.id)

    @staticmethod
    def current_session(user_id) -> Optional[dict]:
        return core.store.get(f"{CURRENT_USER_PREFIX}{user_id}")

    @staticmethod
    def forget_session(user_id) -> None:
        core.store.remove(f"{CURRENT_USER_PREFIX}{user_id}")
