"""Notifications API for instructors watching live sessions."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from qr_attendance import core
from qr_attendance.utils.decorators import instructor_required
from qr_attendance.utils.helpers import success_response

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Notifications service is running')


@notifications_bp.route('', methods=['GET'])
@jwt_required()
@instructor_required
def recent_notifications():
    """Most recent session and check-in notifications, newest first."""
    limit = request.args.get('limit', type=int)
    notifications = core.notifications.recent(limit)
    return success_response(
        data={'notifications': notifications, 'count': len(notifications)}
    )
