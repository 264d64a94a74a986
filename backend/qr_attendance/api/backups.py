"""Backup store API: status, manual sync and inspection of backup entries."""
import io

import pandas as pd
from flask import Blueprint, request, send_file
from flask_jwt_extended import jwt_required

from qr_attendance import core
from qr_attendance.domain import BackupStatus
from qr_attendance.services.report_service import RECORD_COLUMNS, to_spreadsheet
from qr_attendance.utils.decorators import admin_required
from qr_attendance.utils.helpers import error_response, success_response, utcnow

backups_bp = Blueprint('backups', __name__)

ENTRY_COLUMNS = ['key', 'backup_status', 'retry_count', 'last_error', 'created_at', 'synced_at']


def _status_filter():
    status = request.args.get('status')
    if not status:
        return None
    return BackupStatus(status.lower())


@backups_bp.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return success_response(message='Backups service is running')


@backups_bp.route('/status', methods=['GET'])
@jwt_required()
@admin_required
def backup_status():
    """Reachability of both stores and pending/failed counts."""
    return success_response(data=core.backup.get_backup_status())


@backups_bp.route('/sync', methods=['POST'])
@jwt_required()
@admin_required
def sync_backups():
    """Replay pending backup entries into the primary store."""
    result = core.backup.sync_backup_to_database()

    if result.partial_failure:
        message = f"Synced {result.successful} of {result.total} records, {result.failed} failed"
    else:
        message = f"Synced {result.successful} records"

    return success_response(data=result.to_dict(), message=message)


@backups_bp.route('/requeue', methods=['POST'])
@jwt_required()
@admin_required
def requeue_failed():
    """Give failed backup entries a fresh retry budget."""
    requeued = core.backup.requeue_failed()
    return success_response(data={'requeued': requeued}, message=f"Requeued {requeued} failed entries")


@backups_bp.route('/entries', methods=['GET'])
@jwt_required()
@admin_required
def list_entries():
    try:
        status = _status_filter()
    except ValueError:
        return error_response("status must be pending, succeeded or failed", 400)

    entries = core.backup.list_entries(status)
    return success_response(
        data={'entries': [e.to_dict() for e in entries]},
        message=f"Found {len(entries)} backup entries"
    )


@backups_bp.route('/export', methods=['GET'])
@jwt_required()
@admin_required
def export_entries():
    """Download backup entries as CSV or XLSX."""
    fmt = request.args.get('format', 'csv').lower()
    try:
        status = _status_filter()
    except ValueError:
        return error_response("status must be pending, succeeded or failed", 400)

    rows = []
    for entry in core.backup.list_entries(status):
        data = entry.to_dict()
        data['backup_status'] = data.pop('status')
        row = {column: data[column] for column in ENTRY_COLUMNS}
        row.update(data['record'])
        rows.append(row)

    frame = pd.DataFrame(rows, columns=ENTRY_COLUMNS + RECORD_COLUMNS)
    content, mimetype = to_spreadsheet({'Backup': frame}, fmt)

    return send_file(
        io.BytesIO(content),
        as_attachment=True,
        download_name=f"attendance_backup_{utcnow().strftime('%Y%m%d_%H%M%S')}.{fmt}",
        mimetype=mimetype
    )
