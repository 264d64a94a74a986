"""Custom decorators for authorization."""
from functools import wraps
from typing import Optional

from flask_jwt_extended import get_jwt_identity

from qr_attendance import db
from qr_attendance.models.user import User
from qr_attendance.utils.helpers import error_response


def get_current_user() -> Optional[User]:
    """User behind the current JWT, if any."""
    identity = get_jwt_identity()
    if identity is None:
        return None
    try:
        return db.session.get(User, int(identity))
    except (TypeError, ValueError):
        return None


def _role_required(check, message: str):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()

            if not user or not user.is_active:
                return error_response("User not found", 404)

            if not check(user):
                return error_response(message, 403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator


admin_required = _role_required(lambda u: u.is_admin(), "Admin access required")
instructor_required = _role_required(lambda u: u.is_instructor(), "Instructor access required")
student_required = _role_required(lambda u: u.is_student(), "Student access required")
