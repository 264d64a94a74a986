"""Validation utilities for the application."""
import re
from typing import Any, Dict

from qr_attendance.errors import ValidationError


class Validator:
    """Validation helper class."""

    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email))

    @staticmethod
    def validate_password(password: str) -> Dict[str, Any]:
        """Validate password strength."""
        errors = []

        if not password:
            errors.append("Password is required")
        elif len(password) < 6:
            errors.append("Password must be at least 6 characters long")
        elif len(password) > 128:
            errors.append("Password is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def validate_name(name: str) -> Dict[str, Any]:
        """Validate user name."""
        errors = []

        if not name or not name.strip():
            errors.append("Name is required")
        elif len(name.strip()) < 2:
            errors.append("Name must be at least 2 characters long")
        elif len(name.strip()) > 100:
            errors.append("Name is too long")

        return {
            "is_valid": len(errors) == 0,
            "errors": errors
        }

    @staticmethod
    def require_text(value: Any, field: str) -> str:
        """Return a stripped non-empty string or raise ValidationError."""
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required")
        return value.strip()

    @staticmethod
    def require_number(value: Any, field: str, minimum: float, maximum: float) -> float:
        """Return a number within [minimum, maximum] or raise ValidationError."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{field} must be a number")
        if value < minimum or value > maximum:
            raise ValidationError(f"{field} must be between {minimum:g} and {maximum:g}")
        return value
