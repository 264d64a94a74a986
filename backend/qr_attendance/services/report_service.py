"""Attendance statistics and spreadsheet exports."""
import io
from typing import Dict, List, Tuple

import pandas as pd

from qr_attendance.domain import AttendanceRecord
from qr_attendance.errors import ValidationError
from qr_attendance.services.attendance_service import AttendanceService
from qr_attendance.services.session_store import SessionStore

RECORD_COLUMNS = [
    'id', 'session_id', 'student_id', 'student_name', 'student_email',
    'subject_name', 'check_in_time', 'method', 'status', 'grade_points',
]

CSV_MIMETYPE = 'text/csv'
XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


def to_spreadsheet(sheets: Dict[str, pd.DataFrame], fmt: str) -> Tuple[bytes, str]:
    """Render data frames as CSV (first sheet only) or XLSX. Returns (content, mimetype)."""
    if fmt == 'csv':
        frame = next(iter(sheets.values()))
        return frame.to_csv(index=False).encode('utf-8'), CSV_MIMETYPE
    if fmt == 'xlsx':
        excel_buffer = io.BytesIO()
        with pd.ExcelWriter(excel_buffer, engine='openpyxl') as writer:
            for sheet_name, frame in sheets.items():
                frame.to_excel(writer, sheet_name=sheet_name, index=False)
        return excel_buffer.getvalue(), XLSX_MIMETYPE
    raise ValidationError("format must be csv or xlsx")


class ReportService:
    """Aggregates over sessions and attendance records."""

    def __init__(self, sessions: SessionStore, attendance: AttendanceService):
        self.sessions = sessions
        self.attendance = attendance

    @staticmethod
    def records_frame(records: List[AttendanceRecord]) -> pd.DataFrame:
        return pd.DataFrame([r.to_dict() for r in records], columns=RECORD_COLUMNS)

    def session_stats(self, subject: str = None, academic_level: str = None) -> Dict:
        sessions = self.sessions.list_sessions(subject, academic_level)
        total_sessions = len(sessions)
        total_attendees = sum(len(s.attendees) for s in sessions)
        average = round(total_attendees / total_sessions, 2) if total_sessions else 0
        active = self.sessions.get_active_session(subject, academic_level)

        return {
            'total_sessions': total_sessions,
            'total_attendees': total_attendees,
            'average_attendance': average,
            'active_session': active is not None,
            'active_session_id': active.id if active else None,
        }

    def student_report(self, student_id: str) -> Dict:
        """Per-subject attendance and points for one student."""
        records = self.attendance.list_records(student_id=student_id)
        frame = self.records_frame(records)

        subjects = []
        if not frame.empty:
            grouped = frame.groupby('subject_name').agg(
                sessions_attended=('id', 'count'),
                total_points=('grade_points', 'sum'),
                average_score=('grade_points', 'mean'),
            ).reset_index()

            for row in grouped.itertuples(index=False):
                held = len(self.sessions.list_sessions(subject=row.subject_name))
                attended = int(row.sessions_attended)
                subjects.append({
                    'subject': row.subject_name,
                    'sessions_held': max(held, attended),
                    'sessions_attended': attended,
                    'attendance_rate': round(attended / max(held, attended) * 100),
                    'total_points': round(float(row.total_points), 2),
                    'average_score': round(float(row.average_score), 2),
                })

        attended_total = len(records)
        return {
            'student_id': student_id,
            'summary': {
                'sessions_attended': attended_total,
                'total_points': round(float(frame['grade_points'].sum()), 2) if attended_total else 0,
                'average_score': round(float(frame['grade_points'].mean()), 2) if attended_total else 0,
            },
            'subjects': subjects,
            'records': [r.to_dict() for r in records],
        }

    def export_records(self, fmt: str, session_id: str = None, subject: str = None) -> Tuple[bytes, str]:
        records = self.attendance.list_records(session_id=session_id, subject=subject)
        frame = self.records_frame(records)
        sheets = {'Attendance': frame}
        if fmt == 'xlsx' and not frame.empty:
            summary = frame.groupby('subject_name').agg(
                check_ins=('id', 'count'),
                students=('student_id', 'nunique'),
                total_points=('grade_points', 'sum'),
            ).reset_index()
            sheets['Summary'] = summary
        return to_spreadsheet(sheets, fmt)
