"""Shared fixtures for the QR attendance tests."""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from qr_attendance import core, create_app, db
from qr_attendance.models.user import User, UserRole
from qr_attendance.services.attendance_service import AttendanceService
from qr_attendance.services.backup_service import BackupBridge
from qr_attendance.services.events import EventPublisher
from qr_attendance.services.session_store import SessionStore
from qr_attendance.storage import LocalAttendanceRepository, MemoryKeyValueStore

PASSWORD = 'password123'


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime = None):
        self.now = now or datetime(2024, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def local_services(clock):
    """Service graph on the in-memory key-value store, no Flask app needed."""
    store = MemoryKeyValueStore(lock_timeout=2)
    repository = LocalAttendanceRepository(store)
    events = EventPublisher()
    sessions = SessionStore(repository, store, events, clock=clock)
    backup = BackupBridge(repository, store, events, max_retries=3, clock=clock)
    attendance = AttendanceService(sessions, repository, backup, events, clock=clock)

    return SimpleNamespace(
        store=store,
        repository=repository,
        events=events,
        sessions=sessions,
        backup=backup,
        attendance=attendance,
    )


@pytest.fixture
def app():
    """Create test app."""
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def services(app):
    return core.services


def _create_user(email, name, role, student_id=None):
    user = User(email=email, name=name, role=role, student_id=student_id, academic_level='First Year')
    user.set_password(PASSWORD)
    user.save()
    return user


@pytest.fixture
def users(app):
    """One account per role."""
    return {
        'student': _create_user('student@example.com', 'Sara Student', UserRole.STUDENT, 'S1001'),
        'other_student': _create_user('other@example.com', 'Omar Student', UserRole.STUDENT, 'S1002'),
        'instructor': _create_user('instructor@example.com', 'Ian Instructor', UserRole.INSTRUCTOR),
        'admin': _create_user('admin@example.com', 'Ada Admin', UserRole.ADMIN),
    }


@pytest.fixture
def login(client, users):
    """Return Authorization headers for one of the `users` fixtures."""
    def _login(role):
        response = client.post('/api/auth/login', json={
            'email': users[role].email,
            'password': PASSWORD
        })
        assert response.status_code == 200, response.get_json()
        token = response.get_json()['data']['access_token']
        return {'Authorization': f'Bearer {token}'}
    return _login
