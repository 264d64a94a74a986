"""Attendance API endpoints: QR scan check-in, student history and grading."""
from flask import Blueprint, request
from flask_jwt_extended import jwt_required

from qr_attendance import core, limiter
from qr_attendance.domain import StudentIdentity
from qr_attendance.errors import RecordNotFoundError
from qr_attendance.utils.decorators import (
    admin_required, get_current_user, instructor_required, student_required
)
from qr_attendance.utils.helpers import error_response, parse_iso, success_response

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Attendance service is running')


@attendance_bp.route('/scan', methods=['POST'])
@jwt_required()
@student_required
@limiter.limit("20 per minute")
def scan_qr():
    """Mark the current student present from a scanned QR code."""
    data = request.get_json(silent=True) or {}

    if 'qr_data' not in data:
        return error_response("Missing required field: qr_data", 400)

    user = get_current_user()
    result = core.attendance.mark_attendance(
        data['qr_data'],
        StudentIdentity(
            id=user.attendance_id,
            name=user.name,
            email=user.email,
            subject=data.get('subject')
        )
    )

    if result.already_marked:
        return error_response(result.message, 409)

    return success_response(data=result.to_dict(), message=result.message, status_code=201)


@attendance_bp.route('/me', methods=['GET'])
@jwt_required()
@student_required
def my_attendance():
    """Attendance history of the current student."""
    user = get_current_user()
    records = core.attendance.list_records(
        student_id=user.attendance_id,
        subject=request.args.get('subject')
    )

    return success_response(data={
        'records': [r.to_dict() for r in records],
        'total': len(records),
        'total_points': round(sum(r.grade_points for r in records), 2),
    })


@attendance_bp.route('/records', methods=['GET'])
@jwt_required()
@instructor_required
def list_records():
    """Attendance records filtered by session, student, subject or check-in time."""
    since = request.args.get('since')
    try:
        since = parse_iso(since)
    except ValueError:
        return error_response("since must be an ISO-8601 timestamp", 400)

    records = core.attendance.list_records(
        session_id=request.args.get('session_id'),
        student_id=request.args.get('student_id'),
        subject=request.args.get('subject'),
        since=since
    )

    return success_response(
        data={'records': [r.to_dict() for r in records]},
        message=f"Found {len(records)} records"
    )


@attendance_bp.route('/records/<record_id>', methods=['GET'])
@jwt_required()
@instructor_required
def get_record(record_id):
    record = core.attendance.get_record(record_id)
    if record is None:
        raise RecordNotFoundError()
    return success_response(data={'record': record.to_dict()})


@attendance_bp.route('/records/<record_id>/grade', methods=['PATCH'])
@jwt_required()
@admin_required
def override_grade(record_id):
    """Administrator override of the points awarded for a check-in."""
    data = request.get_json(silent=True) or {}
    record = core.attendance.override_grade(record_id, data.get('grade_points'))
    return success_response(data={'record': record.to_dict()}, message="Grade updated")
