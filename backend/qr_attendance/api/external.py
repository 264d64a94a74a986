"""External scan ingress: redirect from a scanned URL and direct check-in submission."""
import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, redirect, request

from qr_attendance import core, limiter
from qr_attendance.errors import StorageUnavailableError, ValidationError

logger = logging.getLogger(__name__)

external_bp = Blueprint('external', __name__)


@external_bp.route('', methods=['GET'])
def external_attendance():
    """Forward a scanned URL to the dashboard, or to the student login without a session."""
    session_id = request.args.get('sessionId')
    token = request.args.get('token')

    if session_id and token:
        query = urlencode({'sessionId': session_id, 'token': token})
        return redirect(f"{current_app.config['SCAN_DASHBOARD_URL']}?{query}")

    return redirect(current_app.config['SCAN_LOGIN_URL'])


@external_bp.route('', methods=['POST'])
@limiter.limit("60 per minute")
def submit_external_attendance():
    """Record a check-in posted by the external scanner.

    Answers 200 for both new and repeated check-ins, distinguished by
    `success`. Storage failures on both the primary and the backup store
    are logged and answered with 500.
    """
    data = request.get_json(silent=True) or {}

    try:
        result = core.attendance.record_external(
            session_id=data.get('sessionId'),
            student_id=data.get('studentId'),
            student_name=data.get('studentName'),
            student_email=data.get('studentEmail'),
            subject=data.get('subject')
        )
    except ValidationError as e:
        return jsonify({'success': False, 'message': e.message}), 400
    except StorageUnavailableError:
        logger.exception("External attendance could not be stored")
        return jsonify({'success': False, 'message': 'Failed to record attendance'}), 500
    except Exception:
        logger.exception("Unexpected error recording external attendance")
        return jsonify({'success': False, 'message': 'Failed to record attendance'}), 500

    if result.already_marked:
        return jsonify({'success': False, 'message': 'Attendance already recorded'}), 200

    return jsonify({
        'success': True,
        'message': 'Attendance recorded successfully',
        'method': result.method
    }), 200
