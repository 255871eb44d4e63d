# File: backend/checkin_app/__init__.py
"""Smart Check-in Service - Application Factory."""
import logging
import os
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

# Initialize extensions
db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200 per day", "50 per hour"]
)

def create_app(config_name: str = None) -> Flask:
    """Application factory pattern."""
    app = Flask(__name__)

    # Load configuration
    from config import get_config
    config_class = get_config(config_name)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    limiter.init_app(app)

    # Configure CORS
    CORS(app, origins=app.config.get('CORS_ORIGINS', ["*"]))

    # Setup logging
    setup_logging(app)

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
            'service': 'Smart Check-in Service',
            'version': '1.0.0'
        })

    return app

def register_blueprints(app: Flask) -> None:
    """Register all application blueprints."""
    from checkin_app.api.auth import auth_bp
    from checkin_app.api.attendance import attendance_bp
    from checkin_app.api.admin import admin_bp
    from checkin_app.api.network import network_bp

    # Auth
    app.register_blueprint(auth_bp, url_prefix='/api/auth')

    # Core Features
    app.register_blueprint(attendance_bp, url_prefix='/api/attendance')
    app.register_blueprint(network_bp, url_prefix='/api/network')

    # Admin Management
    app.register_blueprint(admin_bp, url_prefix='/api/admin')

def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from checkin_app.utils.helpers import handle_error
    from checkin_app.utils.errors import CheckInError, IntegrityViolation
    from werkzeug.exceptions import HTTPException

    @app.errorhandler(CheckInError)
    def handle_checkin_error(error):
        if isinstance(error, IntegrityViolation):
            app.logger.critical('Integrity violation: %s', error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(400)
    def bad_request(error):
        return handle_error(error, 400)

    @app.errorhandler(401)
    def unauthorized(error):
        return handle_error(error, 401)

    @app.errorhandler(403)
    def forbidden(error):
        return handle_error(error, 403)

    @app.errorhandler(404)
    def not_found(error):
        return handle_error(error, 404)

    @app.errorhandler(429)
    def rate_limited(error):
        return handle_error(error, 429)

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return handle_error(error, 500)

    @app.errorhandler(HTTPException)
    def handle_exception(e):
        return handle_error(e, e.code)

    # JWT error handlers
    @jwt.expired_token_loader
    def expired_token_callback(jwt_header, jwt_payload):
        return jsonify({
            'error': True,
            'message': 'Token has expired',
            'status_code': 401
        }), 401

    @jwt.invalid_token_loader
    def invalid_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Invalid token',
            'status_code': 401
        }), 401

    @jwt.unauthorized_loader
    def missing_token_callback(error):
        return jsonify({
            'error': True,
            'message': 'Authorization token required',
            'status_code': 401
        }), 401

def setup_logging(app: Flask) -> None:
    """Setup application logging."""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    logging.getLogger('checkin_app').setLevel(level)

    if not app.debug and not app.testing:
        log_file = app.config.get('LOG_FILE', 'logs/app.log')
        log_dir = os.path.dirname(log_file)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir)

        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
        ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        logging.getLogger('checkin_app').addHandler(file_handler)

        app.logger.setLevel(logging.INFO)
        app.logger.info('Smart Check-in Service startup')

def setup_database(app: Flask) -> None:
    """Setup database connections."""
    with app.app_context():
        # Import all models
        from checkin_app.models import (
            Admin, Student, AttendanceLocation,
            SessionControl, IPRegistration, IdentityLedgerEntry
        )

def register_commands(app: Flask) -> None:
    """Register CLI commands."""
    import click
    
    @app.cli.command()
    @click.option('--drop', is_flag=True, help='Drop existing tables')
    def init_db(drop):
        """Initialize the database."""
        if drop:
            db.drop_all()
            click.echo('Dropped all tables.')
        
        db.create_all()
        click.echo('Created all tables.')
    
    @app.cli.command()
    def create_admin():
        """Create admin user."""
        from checkin_app.services.auth_service import AuthService
        
        email = click.prompt('Admin email')
        name = click.prompt('Admin name', default='', show_default=False)
        password = click.prompt('Password', hide_input=True, confirmation_prompt=True)
        
        admin, error = AuthService.create_admin(email, password, name or None)
        if error:
            click.echo(f'Error creating admin: {error}')
        else:
            click.echo(f'Admin user created: {admin.email}')
    
    @app.cli.command()
    @click.argument('name')
    @click.argument('latitude', type=float)
    @click.argument('longitude', type=float)
    @click.option('--radius', type=click.IntRange(10, 1000), default=100,
                  show_default=True, help='Radius in meters')
    @click.option('--inactive', is_flag=True, help='Create the location disabled')
    def add_location(name, latitude, longitude, radius, inactive):
        """Add an attendance location (geofence)."""
        from checkin_app.models.location import AttendanceLocation
        
        try:
            location = AttendanceLocation(
                name=name,
                latitude=latitude,
                longitude=longitude,
                radius_meters=radius,
                is_active=not inactive
            )
        except ValueError as e:
            raise click.BadParameter(str(e))
        location.save()
        click.echo(f'Location "{name}" created with radius {radius}m')
    
    @app.cli.command()
    def init_sessions():
        """Create missing session gate records (enabled)."""
        from checkin_app.models.session_control import SessionControl
        from checkin_app.services.session_calendar import SESSION_IDS
        
        existing = {c.session for c in SessionControl.query.all()}
        added = 0
        for session in SESSION_IDS:
            if session in existing:
                click.echo(f'{session} already exists')
                continue
            db.session.add(SessionControl(session=session, is_enabled=True,
                                          updated_by='migration'))
            added += 1
            click.echo(f'Added {session} (enabled by default)')
        db.session.commit()
        click.echo(f'{added} session records added.')
    
    @app.cli.command()
    def fix_legacy_records():
        """Tag attendance records that lack a valid session."""
        from checkin_app.services.student_service import StudentService
        from checkin_app.services.session_calendar import SessionCalendar
        
        calendar = SessionCalendar(app.config.get('ATTENDANCE_TIMEZONE'))
        students_updated, records_fixed = StudentService.retag_legacy_records(calendar)
        click.echo(f'Fixed {records_fixed} records across {students_updated} students.')
