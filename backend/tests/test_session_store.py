"""Session lifecycle tests against both repositories."""
import threading
import time
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from qr_attendance import db
from qr_attendance.models.attendance_session import SessionRow

from qr_attendance.errors import SessionNotFoundError, StorageUnavailableError, ValidationError
from qr_attendance.services.events import SESSION_CLOSED, SESSION_CREATED


@pytest.fixture(params=['local', 'sql'])
def store(request, local_services, clock):
    """A SessionStore on the key-value repository or on the database."""
    if request.param == 'local':
        return local_services.sessions

    app = request.getfixturevalue('app')
    sessions = request.getfixturevalue('services').sessions
    sessions.clock = clock
    assert app.testing
    return sessions


def test_create_session_sets_expiry_and_token(store, clock):
    session = store.create_session('Hymn Singing', 'Second Year', 45)

    assert session.is_active
    assert session.created_at == clock.now
    assert (session.expires_at - session.created_at).total_seconds() == 45 * 60
    assert len(session.token) >= 32
    assert store.get_session(session.id).token == session.token


def test_tokens_are_unique(store):
    first = store.create_session('Hymn Singing', 'Second Year', 30)
    second = store.create_session('Improvisation 1', 'Third Year', 30)
    assert first.token != second.token


def test_new_session_deactivates_previous_one_for_same_subject_and_level(store):
    old = store.create_session('Hymn Singing', 'Second Year', 30)
    other = store.create_session('Hymn Singing', 'Third Year', 30)
    new = store.create_session('Hymn Singing', 'Second Year', 30)

    assert store.get_session(old.id).is_active is False
    assert store.get_session(other.id).is_active is True
    assert store.get_active_session('Hymn Singing', 'Second Year').id == new.id


def test_concurrent_creates_leave_one_active_session(local_services, monkeypatch):
    repository = local_services.repository
    find_sessions = repository.find_sessions

    def slow_find_sessions(*args, **kwargs):
        found = find_sessions(*args, **kwargs)
        time.sleep(0.01)
        return found

    monkeypatch.setattr(repository, 'find_sessions', slow_find_sessions)
    barrier = threading.Barrier(6)

    def create():
        barrier.wait()
        local_services.sessions.create_session('Algebra', 'Second Year', 30)

    threads = [threading.Thread(target=create) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    sessions = find_sessions('Algebra', 'Second Year')
    assert len(sessions) == 6
    assert len([s for s in sessions if s.is_active]) == 1


def test_database_rejects_second_active_session_for_pair(app, clock):
    for token in ('tok-1', 'tok-2'):
        db.session.add(SessionRow(
            id=token, subject='Algebra', academic_level='Second Year', token=token,
            created_at=clock.now, expires_at=clock.now + timedelta(minutes=30), is_active=True,
        ))

    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()


@pytest.mark.parametrize('subject, level, minutes', [
    ('', 'Second Year', 30),
    ('Hymn Singing', None, 30),
    ('Hymn Singing', 'Second Year', -1),
    ('Hymn Singing', 'Second Year', 1441),
    ('Hymn Singing', 'Second Year', 'thirty'),
])
def test_create_session_validates_input(store, subject, level, minutes):
    with pytest.raises(ValidationError):
        store.create_session(subject, level, minutes)


def test_expiry_is_evaluated_on_read(store, clock):
    session = store.create_session('Hymn Singing', 'Second Year', 10)

    clock.advance(minutes=10)
    assert store.get_active_session('Hymn Singing', 'Second Year').id == session.id

    clock.advance(microseconds=1)
    assert store.get_active_session('Hymn Singing', 'Second Year') is None
    # Still flagged active in storage, only the clock says otherwise
    assert store.get_session(session.id).is_active is True


def test_list_sessions_newest_first(store, clock):
    first = store.create_session('Hymn Singing', 'Second Year', 30)
    clock.advance(minutes=1)
    second = store.create_session('Improvisation 1', 'Third Year', 30)

    assert [s.id for s in store.list_sessions()] == [second.id, first.id]
    assert [s.id for s in store.list_sessions(subject='Hymn Singing')] == [first.id]


def test_close_session_is_idempotent(store):
    closed = []
    store.events.subscribe(SESSION_CLOSED, lambda event, payload: closed.append(payload['id']))
    session = store.create_session('Hymn Singing', 'Second Year', 30)

    assert store.close_session(session.id).is_active is False
    assert store.close_session(session.id).is_active is False
    assert closed == [session.id]


def test_close_unknown_session(store):
    with pytest.raises(SessionNotFoundError):
        store.close_session('missing')


def test_create_publishes_event(store):
    created = []
    unsubscribe = store.events.subscribe(SESSION_CREATED, lambda event, payload: created.append(payload))

    session = store.create_session('Hymn Singing', 'Second Year', 30)
    unsubscribe()
    store.create_session('Improvisation 1', 'Third Year', 30)

    assert [p['id'] for p in created] == [session.id]


def test_get_session_reads_cache_when_repository_is_down(local_services, monkeypatch):
    sessions = local_services.sessions
    session = sessions.create_session('Hymn Singing', 'Second Year', 30)

    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(local_services.repository, 'get_session', unavailable)
    monkeypatch.setattr(local_services.repository, 'find_sessions', unavailable)

    assert sessions.get_session(session.id).token == session.token
    assert sessions.get_active_session('Hymn Singing', 'Second Year').id == session.id
