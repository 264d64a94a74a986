"""Flask CLI commands."""
import os

import click
from flask import Flask

from qr_attendance import core, db
from qr_attendance.models.user import User, UserRole
from qr_attendance.storage import is_configured


def register(app: Flask) -> None:
    """Register CLI commands on the app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')

        db.create_all()
        click.echo('Created all tables.')

    @app.cli.command('create-admin')
    @click.option('--role', type=click.Choice(['admin', 'instructor']), default='admin')
    def create_admin(role):
        """Create admin or instructor user."""
        email = click.prompt('Email')
        name = click.prompt('Name')
        password = click.prompt('Password', hide_input=True, confirmation_prompt=True)

        user = User(
            email=email.lower().strip(),
            name=name,
            role=UserRole(role)
        )
        user.set_password(password)

        try:
            db.session.add(user)
            db.session.commit()
            click.echo(f'{role.title()} user created: {user.email}')
        except Exception as e:
            db.session.rollback()
            raise click.ClickException(f'Error creating user: {e}')

    @app.cli.command('bootstrap-super-admin')
    def bootstrap_super_admin():
        """Create or reset the break-glass super admin from SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD."""
        email = os.environ.get('SUPER_ADMIN_EMAIL') or app.config.get('SUPER_ADMIN_EMAIL')
        password = os.environ.get('SUPER_ADMIN_PASSWORD') or app.config.get('SUPER_ADMIN_PASSWORD')

        if not is_configured(email) or not is_configured(password):
            raise click.ClickException('SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD must be set')
        if len(password) < 12:
            raise click.ClickException('SUPER_ADMIN_PASSWORD must be at least 12 characters')

        email = email.lower().strip()
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(email=email, name='System Super Administrator')
            db.session.add(user)
        user.role = UserRole.SUPER_ADMIN
        user.is_active = True
        user.set_password(password)
        db.session.commit()
        click.echo(f'Super admin ready: {email}')

    @app.cli.command('sync-backups')
    def sync_backups():
        """Replay pending backup entries into the primary store."""
        result = core.backup.sync_backup_to_database()
        click.echo(f'Synced {result.successful}/{result.total} entries, {result.failed} failed')
        for error in result.errors:
            click.echo(f'  {error}')
