"""Helper functions for the application."""
from datetime import datetime, timezone
from typing import Any, Optional

from flask import jsonify


def handle_error(error, status_code: int):
    """Handle application errors with consistent format."""
    return jsonify({
        'error': True,
        'message': str(error),
        'status_code': status_code
    }), status_code


def success_response(data: Any = None, message: str = "Success", status_code: int = 200):
    """Return consistent success response."""
    response = {
        'error': False,
        'message': message
    }

    if data is not None:
        response['data'] = data

    return jsonify(response), status_code


def error_response(message: str, status_code: int = 400):
    """Return consistent error response."""
    return jsonify({
        'error': True,
        'message': message,
        'status_code': status_code
    }), status_code


def utcnow() -> datetime:
    """Naive UTC now, matching the DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into a naive UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
