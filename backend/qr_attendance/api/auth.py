"""Authentication API."""
from flask import Blueprint, request
from flask_jwt_extended import get_jwt_identity, jwt_required

from qr_attendance import limiter
from qr_attendance.services.auth_service import AuthService
from qr_attendance.utils.decorators import get_current_user
from qr_attendance.utils.helpers import error_response, success_response

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Health check endpoint."""
    return success_response(message="Auth service is running")


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per minute")
def login():
    """Login for students, instructors and admins."""
    data = request.get_json(silent=True)

    if not data:
        return error_response("Request body must be JSON", 400)

    email = (data.get("email") or "").strip()
    password = data.get("password") or ""

    if not email or not password:
        return error_response("Email and password are required", 400)

    result, error = AuthService.login(email, password)

    if error:
        return error_response(error, 401)

    return success_response(data=result, message="Login successful")


@auth_bp.route("/register", methods=["POST"])
@limiter.limit("10 per hour")
def register():
    """Student self-registration."""
    data = request.get_json(silent=True) or {}

    result, error = AuthService.register_student(
        email=data.get("email"),
        password=data.get("password"),
        name=data.get("name"),
        student_id=data.get("student_id"),
        academic_level=data.get("academic_level"),
    )

    if error:
        return error_response(error, 400)

    return success_response(data=result, message="Registration successful", status_code=201)


@auth_bp.route("/me", methods=["GET"])
@jwt_required()
def me():
    """Current user profile and stored session."""
    user = get_current_user()
    if not user:
        return error_response("User not found", 404)

    data = user.to_dict()
    data["session"] = AuthService.current_session(user.id)
    return success_response(data=data)


@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh():
    """Issue a new access token from a refresh token."""
    result, error = AuthService.refresh_token(get_jwt_identity())
    if error:
        return error_response(error, 401)
    return success_response(data=result, message="Token refreshed")


@auth_bp.route("/logout", methods=["POST"])
@jwt_required()
def logout():
    """Forget the stored session of the current user."""
    AuthService.forget_session(get_jwt_identity())
    return success_response(message="Logged out")
