"""Reports API: per-student summaries and attendance exports."""
import io

from flask import Blueprint, request, send_file
from flask_jwt_extended import jwt_required

from qr_attendance import core
from qr_attendance.utils.decorators import instructor_required
from qr_attendance.utils.helpers import success_response, utcnow

reports_bp = Blueprint('reports', __name__)


@reports_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Reports service is running')


@reports_bp.route('/students/<student_id>', methods=['GET'])
@jwt_required()
@instructor_required
def student_report(student_id):
    """Attendance and points of one student, grouped by subject."""
    return success_response(data=core.reports.student_report(student_id))


@reports_bp.route('/export', methods=['GET'])
@jwt_required()
@instructor_required
def export_attendance():
    """Export attendance records as CSV or Excel."""
    fmt = request.args.get('format', 'csv').lower()
    content, mimetype = core.reports.export_records(
        fmt,
        session_id=request.args.get('session_id'),
        subject=request.args.get('subject')
    )

    return send_file(
        io.BytesIO(content),
        as_attachment=True,
        download_name=f"attendance_report_{utcnow().strftime('%Y%m%d')}.{fmt}",
        mimetype=mimetype
    )
