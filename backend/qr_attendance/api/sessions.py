"""Attendance session API endpoints."""
from flask import Blueprint, current_app, request, url_for
from flask_jwt_extended import jwt_required

from qr_attendance import core, limiter
from qr_attendance.catalog import catalog
from qr_attendance.domain import Session
from qr_attendance.errors import SessionNotFoundError
from qr_attendance.services.qr_service import QRService
from qr_attendance.utils.decorators import instructor_required
from qr_attendance.utils.helpers import success_response

sessions_bp = Blueprint('sessions', __name__)


def _qr_bundle(session: Session) -> dict:
    """Payload, rendered image and scan URL for a session."""
    payload = QRService.encode(session)
    return {
        'qr_data': payload,
        'qr_image': QRService.render_image(payload),
        'scan_url': url_for(
            'external.external_attendance',
            sessionId=session.id,
            token=session.token,
            _external=True
        ),
    }


def _session_dict(session: Session, include_token: bool = False) -> dict:
    return session.to_dict(now=core.sessions.clock(), include_token=include_token)


@sessions_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Session service is running')


@sessions_bp.route('/catalog', methods=['GET'])
def get_catalog():
    """Academic levels and their subjects."""
    return success_response(data={'levels': catalog()})


@sessions_bp.route('', methods=['POST'])
@jwt_required()
@instructor_required
@limiter.limit("30 per hour")
def create_session():
    """Open a new attendance session and generate its QR code."""
    data = request.get_json(silent=True) or {}

    session = core.sessions.create_session(
        subject=data.get('subject'),
        academic_level=data.get('academic_level'),
        duration_minutes=data.get('duration_minutes', current_app.config['DEFAULT_SESSION_MINUTES'])
    )

    return success_response(
        data={'session': _session_dict(session, include_token=True), **_qr_bundle(session)},
        message="Session created successfully",
        status_code=201
    )


@sessions_bp.route('', methods=['GET'])
@jwt_required()
@instructor_required
def list_sessions():
    """Session history, newest first."""
    sessions = core.sessions.list_sessions(
        subject=request.args.get('subject'),
        academic_level=request.args.get('academic_level')
    )
    return success_response(
        data={'sessions': [_session_dict(s) for s in sessions]},
        message=f"Found {len(sessions)} sessions"
    )


@sessions_bp.route('/active', methods=['GET'])
@jwt_required()
def get_active_session():
    """The currently open session for an optional subject/level filter."""
    session = core.sessions.get_active_session(
        subject=request.args.get('subject'),
        academic_level=request.args.get('academic_level')
    )
    if session is None:
        return success_response(data={'session': None}, message="No active session")

    return success_response(data={'session': _session_dict(session)})


@sessions_bp.route('/stats', methods=['GET'])
@jwt_required()
@instructor_required
def session_stats():
    """Totals across sessions."""
    return success_response(data=core.reports.session_stats(
        subject=request.args.get('subject'),
        academic_level=request.args.get('academic_level')
    ))


@sessions_bp.route('/<session_id>', methods=['GET'])
@jwt_required()
@instructor_required
def get_session(session_id):
    session = core.sessions.get_session(session_id)
    if session is None:
        raise SessionNotFoundError()
    return success_response(data={'session': _session_dict(session)})


@sessions_bp.route('/<session_id>/qr', methods=['GET'])
@jwt_required()
@instructor_required
def get_session_qr(session_id):
    """Re-render the QR code of an open session."""
    session = core.sessions.get_session(session_id)
    if session is None:
        raise SessionNotFoundError()
    return success_response(data={'session': _session_dict(session, include_token=True), **_qr_bundle(session)})


@sessions_bp.route('/<session_id>/close', methods=['POST'])
@jwt_required()
@instructor_required
def close_session(session_id):
    """Close a session. Closing twice is harmless."""
    session = core.sessions.close_session(session_id)
    return success_response(data={'session': _session_dict(session)}, message="Session closed")
