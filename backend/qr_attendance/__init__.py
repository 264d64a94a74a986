"""QR Attendance Service - Application Factory."""
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)

from qr_attendance.core import AttendanceCore  # noqa: E402  (needs db above)

core = AttendanceCore()


def create_app(config_name: str = None, overrides: dict = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    # Setup logging
    setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)
    core.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Setup database
    setup_database(app)

    # Add CLI commands
    register_commands(app)

    # Add health check
    @app.route('/health')
    def health_check():
        return jsonify({
            'status': 'healthy',
            'service': 'QR Attendance Service',
            'version': '1.0.0',
            'storage_mode': core.services.mode
        })

    return app


def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from qr_attendance.api.auth import auth_bp
    from qr_attendance.api.sessions import sessions_bp
    from qr_attendance.api.attendance import attendance_bp
    from qr_attendance.api.external import external_bp
    from qr_attendance.api.backups import backups_bp
    from qr_attendance.api.reports import reports_bp
    from qr_attendance.api.notifications import notifications_bp

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Core Features
    app.register_blueprint(sessions_bp, url_prefix='/api/sessions')
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(external_bp, url_prefix='/api/external')

    # Administration
    app.register_blueprint(backups_bp, url_prefix='/api/backups')
    app.register_blueprint(reports_bp, url_prefix='/api/reports')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')

    # Swagger UI
    from qr_attendance.utils.swagger import API_URL, generate_swagger_spec, get_swagger_blueprint

    @app.route(API_URL)
    def swagger_spec():
        """Serve Swagger/OpenAPI specification."""
        return jsonify(generate_swagger_spec())

    app.register_blueprint(get_swagger_blueprint())


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from werkzeug.exceptions import HTTPException

    from qr_attendance.errors import AttendanceError
    from qr_attendance.utils.helpers import error_response, handle_error

    @app.errorhandler(AttendanceError)
    def attendance_error(error):
        if error.status_code >= 500:
            app.logger.warning("Request failed: %s", error.message)
        return error_response(error.message, error.status_code)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e.description, e.code)

    @app.errorhandler(Exception)
    def unexpected_error(error):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", error)
        return error_response("Internal server error", 500)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return error_response('Token has expired', 401)

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return error_response('Invalid token', 401)

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return error_response('Authorization token required', 401)


def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)

        app.logger.info('QR Attendance Service startup')


def setup_database(app: Flask) -> None:
    """Create tables for the configured database."""
    with app.app_context():
        from qr_attendance import models  # noqa: F401

        # Local fallback mode keeps users in a throwaway in-memory database
        if app.config.get('AUTO_CREATE_TABLES') or core.services.mode == 'local':
            db.create_all()


def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    from qr_attendance.commands import register
    register(app)
