"""HTTP endpoint tests."""
import io
import json

import pandas as pd
import pytest

from qr_attendance.errors import StorageUnavailableError


@pytest.fixture
def instructor(login):
    return login('instructor')


@pytest.fixture
def student(login):
    return login('student')


@pytest.fixture
def admin(login):
    return login('admin')


@pytest.fixture
def created(client, instructor):
    """A freshly created session response payload."""
    response = client.post('/api/sessions', headers=instructor, json={
        'subject': 'Hymn Singing',
        'academic_level': 'Second Year',
        'duration_minutes': 30
    })
    assert response.status_code == 201, response.get_json()
    return response.get_json()['data']


def scan(client, headers, qr_data, **extra):
    return client.post('/api/attendance/scan', headers=headers, json={'qr_data': qr_data, **extra})


def test_health(client):
    response = client.get('/health')
    assert response.status_code == 200
    assert response.get_json()['storage_mode'] == 'sql'


def test_swagger_document_lists_endpoints(client):
    document = client.get('/api/swagger.json').get_json()
    assert '/attendance/scan' in document['paths']
    assert 'post' in document['paths']['/external']


def test_create_session_returns_qr_bundle(created):
    session = created['session']
    assert session['is_active'] is True
    assert session['attendee_count'] == 0
    assert session['token'] == json.loads(created['qr_data'])['token']
    assert created['qr_image'].startswith('data:image/png;base64,')
    assert f"sessionId={session['id']}" in created['scan_url']


def test_create_session_uses_default_duration(client, instructor):
    response = client.post('/api/sessions', headers=instructor, json={
        'subject': 'Hymn Singing',
        'academic_level': 'Second Year'
    })
    session = response.get_json()['data']['session']
    assert session['expires_at'] > session['created_at']


def test_create_session_requires_instructor(client, student):
    response = client.post('/api/sessions', headers=student, json={
        'subject': 'Hymn Singing',
        'academic_level': 'Second Year'
    })
    assert response.status_code == 403


def test_create_session_validation_error(client, instructor):
    response = client.post('/api/sessions', headers=instructor, json={'subject': 'Hymn Singing'})
    assert response.status_code == 400
    assert response.get_json()['error'] is True
    assert 'academic_level' in response.get_json()['message']


def test_session_queries(client, instructor, student, created):
    session_id = created['session']['id']

    listed = client.get('/api/sessions', headers=instructor).get_json()['data']['sessions']
    assert [s['id'] for s in listed] == [session_id]
    assert 'token' not in listed[0]

    active = client.get('/api/sessions/active', headers=student, query_string={'subject': 'Hymn Singing'})
    assert active.get_json()['data']['session']['id'] == session_id

    detail = client.get(f'/api/sessions/{session_id}', headers=instructor)
    assert detail.get_json()['data']['session']['subject'] == 'Hymn Singing'

    qr = client.get(f'/api/sessions/{session_id}/qr', headers=instructor).get_json()['data']
    assert qr['qr_data'] == created['qr_data']

    assert client.get('/api/sessions/missing', headers=instructor).status_code == 404


def test_close_session(client, instructor, student, created):
    session_id = created['session']['id']

    for _ in range(2):
        response = client.post(f'/api/sessions/{session_id}/close', headers=instructor)
        assert response.status_code == 200
        assert response.get_json()['data']['session']['is_active'] is False

    assert client.get('/api/sessions/active', headers=student).get_json()['data']['session'] is None
    assert scan(client, student, created['qr_data']).status_code == 410


def test_catalog_is_public(client):
    levels = client.get('/api/sessions/catalog').get_json()['data']['levels']
    assert levels[0]['academic_level'] == 'First Year'


def test_scan_records_attendance_once(client, student, created):
    first = scan(client, student, created['qr_data'])
    assert first.status_code == 201
    record = first.get_json()['data']['record']
    assert record['student_id'] == 'S1001'
    assert record['method'] == 'qr_scan'
    assert record['grade_points'] == 10.0

    second = scan(client, student, created['qr_data'])
    assert second.status_code == 409
    assert 'already marked' in second.get_json()['message']


def test_scan_errors(client, student, instructor, created):
    assert scan(client, student, 'not-a-qr-code').status_code == 400
    assert client.post('/api/attendance/scan', headers=student, json={}).status_code == 400

    forged = json.loads(created['qr_data'])
    forged['sessionId'] = 'missing'
    assert scan(client, student, json.dumps(forged)).status_code == 404

    mismatch = scan(client, student, created['qr_data'], subject='Improvisation 1')
    assert mismatch.status_code == 400

    assert scan(client, instructor, created['qr_data']).status_code == 403


def test_my_attendance(client, student, created):
    scan(client, student, created['qr_data'])

    data = client.get('/api/attendance/me', headers=student).get_json()['data']
    assert data['total'] == 1
    assert data['total_points'] == 10.0


def test_records_and_grade_override(client, student, instructor, admin, created):
    scan(client, student, created['qr_data'])

    records = client.get(
        f"/api/attendance/records?session_id={created['session']['id']}", headers=instructor
    ).get_json()['data']['records']
    assert len(records) == 1
    record_id = records[0]['id']

    detail = client.get(f'/api/attendance/records/{record_id}', headers=instructor)
    assert detail.get_json()['data']['record']['student_id'] == 'S1001'
    assert client.get('/api/attendance/records/missing', headers=instructor).status_code == 404

    url = f'/api/attendance/records/{record_id}/grade'
    assert client.patch(url, headers=instructor, json={'grade_points': 5}).status_code == 403
    assert client.patch(url, headers=admin, json={'grade_points': 500}).status_code == 400
    assert client.patch('/api/attendance/records/missing/grade', headers=admin,
                        json={'grade_points': 5}).status_code == 404

    response = client.patch(url, headers=admin, json={'grade_points': 8.5})
    assert response.status_code == 200
    assert response.get_json()['data']['record']['grade_points'] == 8.5


def test_records_rejects_bad_since(client, instructor):
    response = client.get('/api/attendance/records?since=yesterday', headers=instructor)
    assert response.status_code == 400


def test_external_get_redirects_to_dashboard(client):
    response = client.get('/api/external?sessionId=abc&token=xyz')
    assert response.status_code == 302
    assert '/external-attendance/dashboard?sessionId=abc&token=xyz' in response.headers['Location']


def test_external_get_without_params_redirects_to_login(client):
    response = client.get('/api/external?sessionId=abc')
    assert response.status_code == 302
    assert '/simple-auth/student/login' in response.headers['Location']


def test_external_post(client, created):
    body = {
        'sessionId': created['session']['id'],
        'studentId': 'EXT-1',
        'studentName': 'Walk In',
        'studentEmail': 'walkin@example.com',
        'subject': 'Hymn Singing'
    }

    first = client.post('/api/external', json=body)
    assert first.status_code == 200
    assert first.get_json()['success'] is True

    second = client.post('/api/external', json=body)
    assert second.status_code == 200
    assert second.get_json() == {'success': False, 'message': 'Attendance already recorded'}


def test_external_post_missing_fields(client):
    response = client.post('/api/external', json={'studentId': 'EXT-1'})
    assert response.status_code == 400
    assert response.get_json()['success'] is False


def test_external_post_falls_back_when_database_is_down(client, services, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(services.repository, 'add_attendance', unavailable)

    response = client.post('/api/external', json={'sessionId': 'offline', 'studentId': 'EXT-2'})
    assert response.status_code == 200
    assert response.get_json()['method'] == 'local_fallback'
    assert services.backup.get_backup_status()['pending_records'] == 1


def test_external_post_500_when_all_storage_fails(client, services, monkeypatch):
    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(services.repository, 'add_attendance', unavailable)
    monkeypatch.setattr(services.store, 'set_if_absent', unavailable)

    response = client.post('/api/external', json={'sessionId': 'offline', 'studentId': 'EXT-3'})
    assert response.status_code == 500
    assert response.get_json()['success'] is False


def test_backup_endpoints(client, admin, instructor, services, monkeypatch):
    assert client.get('/api/backups/status', headers=instructor).status_code == 403

    original = services.repository.add_attendance

    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(services.repository, 'add_attendance', unavailable)
    client.post('/api/external', json={'sessionId': 'offline', 'studentId': 'EXT-4'})
    monkeypatch.setattr(services.repository, 'add_attendance', original)

    status = client.get('/api/backups/status', headers=admin).get_json()['data']
    assert status['database_ready'] is True
    assert status['pending_records'] == 1

    pending = client.get('/api/backups/entries?status=pending', headers=admin).get_json()['data']
    assert len(pending['entries']) == 1
    assert client.get('/api/backups/entries?status=bogus', headers=admin).status_code == 400

    synced = client.post('/api/backups/sync', headers=admin).get_json()['data']
    assert (synced['total'], synced['successful'], synced['failed']) == (1, 1, 0)
    assert len(services.attendance.list_records(student_id='EXT-4')) == 1

    export = client.get('/api/backups/export?format=csv', headers=admin)
    assert export.status_code == 200
    frame = pd.read_csv(io.BytesIO(export.data))
    assert list(frame['student_id']) == ['EXT-4']
    assert list(frame['backup_status']) == ['succeeded']



def test_requeue_failed_backup_entries(client, admin, services, monkeypatch):
    original = services.repository.add_attendance

    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(services.repository, 'add_attendance', unavailable)
    client.post('/api/external', json={'sessionId': 'offline', 'studentId': 'EXT-5'})
    for _ in range(services.backup.max_retries):
        client.post('/api/backups/sync', headers=admin)
    assert client.get('/api/backups/status', headers=admin).get_json()['data']['failed_records'] == 1

    response = client.post('/api/backups/requeue', headers=admin)
    assert response.status_code == 200
    assert response.get_json()['data']['requeued'] == 1

    pending = client.get('/api/backups/entries?status=pending', headers=admin).get_json()['data']['entries']
    assert [e['retry_count'] for e in pending] == [0]

    monkeypatch.setattr(services.repository, 'add_attendance', original)
    synced = client.post('/api/backups/sync', headers=admin).get_json()['data']
    assert (synced['total'], synced['successful']) == (1, 1)

def test_reports(client, instructor, student, created):
    scan(client, student, created['qr_data'])

    report = client.get('/api/reports/students/S1001', headers=instructor).get_json()['data']
    assert report['summary']['sessions_attended'] == 1
    assert report['subjects'][0]['subject'] == 'Hymn Singing'
    assert report['subjects'][0]['attendance_rate'] == 100

    stats = client.get('/api/sessions/stats', headers=instructor).get_json()['data']
    assert stats['total_sessions'] == 1
    assert stats['total_attendees'] == 1
    assert stats['active_session_id'] == created['session']['id']


def test_report_exports(client, instructor, student, created):
    scan(client, student, created['qr_data'])

    csv = client.get('/api/reports/export?format=csv', headers=instructor)
    assert csv.status_code == 200
    assert csv.mimetype == 'text/csv'
    assert pd.read_csv(io.BytesIO(csv.data))['student_name'].tolist() == ['Sara Student']

    xlsx = client.get(
        '/api/reports/export', headers=instructor, query_string={'format': 'xlsx', 'subject': 'Hymn Singing'}
    )
    assert xlsx.status_code == 200
    sheets = pd.read_excel(io.BytesIO(xlsx.data), sheet_name=None)
    assert set(sheets) == {'Attendance', 'Summary'}

    assert client.get('/api/reports/export?format=pdf', headers=instructor).status_code == 400


def test_notifications(client, instructor, student, created):
    scan(client, student, created['qr_data'])

    data = client.get('/api/notifications', headers=instructor).get_json()['data']
    assert [n['type'] for n in data['notifications']] == ['attendance.recorded', 'session.created']
    assert 'Sara Student' in data['notifications'][0]['message']

    limited = client.get('/api/notifications?limit=1', headers=instructor).get_json()['data']
    assert limited['count'] == 1


def test_unexpected_error_is_hidden(client, instructor, services, monkeypatch):
    def boom(*args, **kwargs):
        raise RuntimeError("secret connection string")

    monkeypatch.setattr(services.reports, 'student_report', boom)

    response = client.get('/api/reports/students/S1001', headers=instructor)
    assert response.status_code == 500
    assert response.get_json()['message'] == 'Internal server error'
