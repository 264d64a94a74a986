"""Flask extension wiring the storage adapters and attendance services."""
from dataclasses import dataclass
from datetime import timedelta

from flask import Flask, current_app

from qr_attendance.services.attendance_service import AttendanceService
from qr_attendance.services.backup_service import BackupBridge
from qr_attendance.services.events import EventPublisher, NotificationFeed
from qr_attendance.services.report_service import ReportService
from qr_attendance.services.session_store import SessionStore
from qr_attendance.storage import (
    AttendanceRepository, KeyValueStore, build_repository, create_kv_store, resolve_storage_mode
)

EXTENSION_KEY = 'qr_attendance'


@dataclass
class AttendanceServices:
    """Per-application service graph."""
    mode: str
    store: KeyValueStore
    repository: AttendanceRepository
    events: EventPublisher
    sessions: SessionStore
    backup: BackupBridge
    attendance: AttendanceService
    reports: ReportService
    notifications: NotificationFeed


class AttendanceCore:
    """Builds one service graph per app and exposes it through `current_app`."""

    def __init__(self, app: Flask = None):
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        mode = resolve_storage_mode(app.config)
        if mode == 'local':
            app.logger.warning("No database configured, attendance runs in local fallback mode")

        timeout = app.config.get('STORAGE_TIMEOUT_SECONDS', 5)
        store = create_kv_store(app.config.get('LOCAL_STORE_URL', 'memory://'), timeout=timeout)
        repository = build_repository(mode, store)
        events = EventPublisher()

        sessions = SessionStore(
            repository, store, events,
            max_minutes=app.config.get('MAX_SESSION_MINUTES', 1440),
        )
        backup = BackupBridge(
            repository, store, events,
            max_retries=app.config.get('BACKUP_MAX_RETRIES', 5),
            retention=timedelta(hours=app.config.get('BACKUP_RETENTION_HOURS', 24)),
        )
        attendance = AttendanceService(
            sessions, repository, backup, events,
            default_score=app.config.get('ATTENDANCE_DEFAULT_SCORE', 10.0),
            max_score=app.config.get('ATTENDANCE_MAX_SCORE', 100.0),
        )

        app.extensions[EXTENSION_KEY] = AttendanceServices(
            mode=mode,
            store=store,
            repository=repository,
            events=events,
            sessions=sessions,
            backup=backup,
            attendance=attendance,
            reports=ReportService(sessions, attendance),
            notifications=NotificationFeed(events),
        )

    @property
    def services(self) -> AttendanceServices:
        return current_app.extensions[EXTENSION_KEY]

    @property
    def store(self) -> KeyValueStore:
        return self.services.store

    @property
    def sessions(self) -> SessionStore:
        return self.services.sessions

    @property
    def attendance(self) -> AttendanceService:
        return self.services.attendance

    @property
    def backup(self) -> BackupBridge:
        return self.services.backup

    @property
    def reports(self) -> ReportService:
        return self.services.reports

    @property
    def notifications(self) -> NotificationFeed:
        return self.services.notifications
