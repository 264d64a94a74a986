"""Flask CLI command tests."""
from qr_attendance.errors import StorageUnavailableError
from qr_attendance.models.user import User, UserRole


def test_bootstrap_super_admin_requires_environment(app, monkeypatch):
    monkeypatch.delenv('SUPER_ADMIN_EMAIL', raising=False)
    monkeypatch.delenv('SUPER_ADMIN_PASSWORD', raising=False)

    result = app.test_cli_runner().invoke(args=['bootstrap-super-admin'])

    assert result.exit_code != 0
    assert 'must be set' in result.output
    assert User.query.count() == 0


def test_bootstrap_super_admin_rejects_short_password(app, monkeypatch):
    monkeypatch.setenv('SUPER_ADMIN_EMAIL', 'root@example.com')
    monkeypatch.setenv('SUPER_ADMIN_PASSWORD', 'short')

    result = app.test_cli_runner().invoke(args=['bootstrap-super-admin'])

    assert result.exit_code != 0
    assert 'at least 12' in result.output


def test_bootstrap_super_admin_creates_and_resets(app, monkeypatch):
    monkeypatch.setenv('SUPER_ADMIN_EMAIL', 'Root@Example.com')
    monkeypatch.setenv('SUPER_ADMIN_PASSWORD', 'a-long-break-glass-secret')
    runner = app.test_cli_runner()

    assert runner.invoke(args=['bootstrap-super-admin']).exit_code == 0
    monkeypatch.setenv('SUPER_ADMIN_PASSWORD', 'another-long-break-glass-secret')
    assert runner.invoke(args=['bootstrap-super-admin']).exit_code == 0

    admins = User.query.filter_by(email='root@example.com').all()
    assert len(admins) == 1
    assert admins[0].role == UserRole.SUPER_ADMIN
    assert admins[0].check_password('another-long-break-glass-secret')
    assert 'break-glass' not in admins[0].password_hash


def test_create_admin_prompts(app):
    result = app.test_cli_runner().invoke(
        args=['create-admin', '--role', 'instructor'],
        input='lecturer@example.com\nLena Lecturer\nsecret-pass\nsecret-pass\n'
    )

    assert result.exit_code == 0, result.output
    user = User.query.filter_by(email='lecturer@example.com').first()
    assert user.role == UserRole.INSTRUCTOR


def test_sync_backups_command(app, services, monkeypatch):
    session = services.sessions.create_session('Hymn Singing', 'Second Year', 30)
    original = services.repository.add_attendance

    def unavailable(*args, **kwargs):
        raise StorageUnavailableError()

    monkeypatch.setattr(services.repository, 'add_attendance', unavailable)
    services.attendance.record_external(session.id, 'S5000', 'Offline Student')
    monkeypatch.setattr(services.repository, 'add_attendance', original)

    result = app.test_cli_runner().invoke(args=['sync-backups'])

    assert result.exit_code == 0
    assert 'Synced 1/1 entries, 0 failed' in result.output
    assert len(services.sessions.get_session(session.id).attendees) == 1
