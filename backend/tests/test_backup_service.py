"""Backup bridge tests: mirroring, pending entries and sync passes."""
import pytest

from qr_attendance.domain import BackupStatus, StudentIdentity
from qr_attendance.errors import StorageUnavailableError
from qr_attendance.services.qr_service import QRService


@pytest.fixture
def session(local_services):
    return local_services.sessions.create_session('Algebra', 'Second Year', 30)


@pytest.fixture
def offline(local_services, monkeypatch):
    """Take the primary store offline; returns a function bringing it back."""
    original = local_services.repository.add_attendance

    def unavailable(*args, **kwargs):
        raise StorageUnavailableError("connection refused")

    monkeypatch.setattr(local_services.repository, 'add_attendance', unavailable)

    def restore(failing_students=()):
        def add_attendance(record, include_attendee=True):
            if record.student_id in failing_students:
                raise StorageUnavailableError(f"write of {record.student_id} timed out")
            return original(record, include_attendee=include_attendee)

        monkeypatch.setattr(local_services.repository, 'add_attendance', add_attendance)

    return restore


def scan_all(local_services, session, student_ids):
    payload = QRService.encode(session)
    for student_id in student_ids:
        result = local_services.attendance.mark_attendance(
            payload, StudentIdentity(id=student_id, name=f'Student {student_id}')
        )
        assert result.success


def test_successful_records_are_mirrored(local_services, session):
    scan_all(local_services, session, ['s1', 's2'])

    entries = local_services.backup.list_entries()
    assert {e.record.student_id for e in entries} == {'s1', 's2'}
    assert {e.status for e in entries} == {BackupStatus.SUCCEEDED}
    assert local_services.backup.get_backup_status()['pending_records'] == 0


def test_sync_with_partial_failure(local_services, session, offline):
    scan_all(local_services, session, ['s1', 's2', 's3'])
    assert local_services.backup.get_backup_status()['pending_records'] == 3

    offline(failing_students={'s2'})
    result = local_services.backup.sync_backup_to_database()

    assert (result.total, result.successful, result.failed) == (3, 2, 1)
    assert result.partial_failure is True
    assert 's2' in result.errors[0]

    pending = local_services.backup.list_entries(BackupStatus.PENDING)
    assert [e.record.student_id for e in pending] == ['s2']
    assert pending[0].retry_count == 1
    assert 'timed out' in pending[0].last_error

    records = local_services.attendance.list_records(session_id=session.id)
    assert sorted(r.student_id for r in records) == ['s1', 's3']


def test_sync_retry_picks_up_remaining_entry(local_services, session, offline):
    scan_all(local_services, session, ['s1', 's2'])
    offline(failing_students={'s2'})
    local_services.backup.sync_backup_to_database()

    offline()
    result = local_services.backup.sync_backup_to_database()

    assert (result.total, result.successful, result.failed) == (1, 1, 0)
    assert local_services.backup.list_entries(BackupStatus.PENDING) == []
    assert local_services.backup.get_backup_status()['last_backup_sync'] is not None
    assert len(local_services.sessions.get_session(session.id).attendees) == 2


def test_sync_is_idempotent_for_records_already_written(local_services, session, offline):
    scan_all(local_services, session, ['s1'])
    offline()
    entry = local_services.backup.list_entries(BackupStatus.PENDING)[0]
    # The record reached the primary store through another path
    local_services.repository.add_attendance(entry.record)

    result = local_services.backup.sync_backup_to_database()

    assert (result.total, result.successful, result.failed) == (1, 1, 0)
    assert len(local_services.attendance.list_records(session_id=session.id)) == 1


def test_entry_is_parked_after_max_retries(local_services, session, offline, monkeypatch):
    scan_all(local_services, session, ['s1'])
    offline(failing_students={'s1'})

    for _ in range(3):
        local_services.backup.sync_backup_to_database()

    assert local_services.backup.list_entries(BackupStatus.PENDING) == []
    failed = local_services.backup.list_entries(BackupStatus.FAILED)
    assert failed[0].retry_count == 3

    status = local_services.backup.get_backup_status()
    assert status['failed_records'] == 1
    assert status['pending_records'] == 0

    # Parked entries wait while the primary store is unreachable
    monkeypatch.setattr(local_services.repository, 'ping', lambda: False)
    assert local_services.backup.sync_backup_to_database().total == 0


def test_parked_entry_syncs_once_primary_is_back(local_services, session, offline, monkeypatch):
    scan_all(local_services, session, ['s1'])
    offline(failing_students={'s1'})
    monkeypatch.setattr(local_services.repository, 'ping', lambda: False)
    for _ in range(4):
        local_services.backup.sync_backup_to_database()
    assert len(local_services.backup.list_entries(BackupStatus.FAILED)) == 1

    offline()
    monkeypatch.setattr(local_services.repository, 'ping', lambda: True)
    result = local_services.backup.sync_backup_to_database()

    assert (result.total, result.successful, result.failed) == (1, 1, 0)
    assert local_services.backup.list_entries(BackupStatus.FAILED) == []
    assert [r.student_id for r in local_services.attendance.list_records(session_id=session.id)] == ['s1']


def test_requeue_failed_resets_retry_budget(local_services, session, offline):
    scan_all(local_services, session, ['s1', 's2'])
    offline(failing_students={'s1'})
    for _ in range(3):
        local_services.backup.sync_backup_to_database()

    assert local_services.backup.requeue_failed() == 1

    pending = local_services.backup.list_entries(BackupStatus.PENDING)
    assert [(e.record.student_id, e.retry_count) for e in pending] == [('s1', 0)]
    assert local_services.backup.requeue_failed() == 0


def test_sync_prunes_old_mirrored_entries(local_services, clock, session):
    scan_all(local_services, session, ['s1'])
    clock.advance(hours=23)
    later = local_services.sessions.create_session('Algebra', 'Second Year', 30)
    scan_all(local_services, later, ['s2'])
    clock.advance(hours=2)

    local_services.backup.sync_backup_to_database()

    entries = local_services.backup.list_entries()
    assert [e.record.student_id for e in entries] == ['s2']
    # The record itself stays in the primary store
    assert len(local_services.attendance.list_records(subject='Algebra')) == 2


def test_status_reports_store_reachability(local_services):
    status = local_services.backup.get_backup_status()

    assert status['database_ready'] is True
    assert status['backup_ready'] is True
    assert status['storage_mode'] == 'local'
    assert status['last_backup_sync'] is None


def test_empty_sync(local_services):
    result = local_services.backup.sync_backup_to_database()
    assert result.to_dict()['total'] == 0
    assert result.partial_failure is False
