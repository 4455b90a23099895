# app.py
"""
Flask Application Factory for the shop-floor manufacturing backend

This application factory wires together:
- Onshape OAuth sign-in with tokens kept in the signed session cookie
- Kanban board, equipment, process and user JSON APIs
- Authenticated proxy endpoints over the Onshape REST API
- Logging, error handling, health checks and request middleware
- Environment-based configuration management
"""

import os
import time
import logging
import logging.handlers
from datetime import datetime, timezone

from flask import Flask, request, jsonify, g
from flask_migrate import Migrate
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.exceptions import HTTPException
from sqlalchemy import event, text

from config import CONFIGS, ProductionConfig
from core.database_models import db
from core.errors import ApiError
from core.onshape_client import OnshapeApiError
from core.token_store import init_token_store
from api.auth import auth_bp, limiter
from api.onshape import onshape_bp
from api.equipment import equipment_bp
from api.processes import processes_bp
from api.kanban import kanban_bp
from api.users import users_bp
from api.mfg import mfg_bp
from middleware.security import security_headers
from services.processes import seed_processes

logger = logging.getLogger(__name__)

migrate = Migrate()

MIGRATIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'migrations')

# Environment variables that override the selected config class
ENV_OVERRIDES = (
    'SECRET_KEY',
    'ENCRYPTION_KEY',
    'DATABASE_URL',
    'ONSHAPE_CLIENT_ID',
    'ONSHAPE_CLIENT_SECRET',
    'ONSHAPE_REDIRECT_URI',
    'ONSHAPE_SCOPE',
    'ONSHAPE_API_URL',
    'ONSHAPE_OAUTH_URL',
    'SUPABASE_URL',
    'SUPABASE_SERVICE_KEY',
    'LOG_LEVEL',
)


def setup_logging(app: Flask) -> None:
    """
    Configure logging for the application and its module loggers

    - systemd journal when syslog logging is enabled and python-systemd is installed
    - syslog socket as the next choice when syslog logging is enabled
    - stderr stream otherwise
    """
    log_level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    app.logger.setLevel(log_level)

    # pytest captures records itself
    if app.testing:
        return

    journal_formatter = logging.Formatter(
        fmt='%(name)s[%(process)d]: %(levelname)s %(message)s',
    )
    detailed_formatter = logging.Formatter(
        fmt='%(asctime)s %(name)-20s %(levelname)-8s %(funcName)-15s:%(lineno)-4d %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    handler = None
    if app.config.get('LOG_TO_SYSLOG'):
        try:
            import systemd.journal
            handler = systemd.journal.JournalHandler()
        except ImportError:
            address = app.config.get('SYSLOG_ADDRESS', '/dev/log')
            handler = logging.handlers.SysLogHandler(
                address=address if os.path.exists(address) else ('localhost', 514)
            )
        handler.setFormatter(journal_formatter)
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(detailed_formatter)

    handler.setLevel(log_level)
    # Module loggers propagate to the root logger; Flask's own handler would duplicate lines
    app.logger.handlers.clear()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Suppress verbose third-party logs in production
    if not app.debug:
        logging.getLogger('werkzeug').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def configure_database(app: Flask) -> None:
    """
    Configure Flask-SQLAlchemy and migrations

    Features:
    - Connection pooling for PostgreSQL
    - Foreign key enforcement on SQLite
    - Performance logging for slow queries
    """
    database_url = app.config.get('DATABASE_URL', 'sqlite:///basecamp.db')
    # Heroku-style URLs
    if database_url.startswith('postgres://'):
        database_url = database_url.replace('postgres://', 'postgresql://', 1)

    engine_options = {'pool_pre_ping': True}
    if database_url.startswith('postgresql'):
        engine_options.update({
            'pool_size': app.config.get('DB_POOL_SIZE', 10),
            'max_overflow': app.config.get('DB_MAX_OVERFLOW', 20),
            'pool_recycle': 3600,
            'connect_args': {
                'application_name': 'basecamp',
                'connect_timeout': 10,
            }
        })

    app.config['SQLALCHEMY_DATABASE_URI'] = database_url
    app.config['SQLALCHEMY_ENGINE_OPTIONS'] = engine_options

    db.init_app(app)
    migrate.init_app(app, db, directory=MIGRATIONS_DIR)

    with app.app_context():
        engine = db.engine
        if engine.dialect.name == 'sqlite':
            event.listen(engine, 'connect', _enable_sqlite_foreign_keys)

        @event.listens_for(engine, "before_cursor_execute")
        def receive_before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            context._query_start_time = time.perf_counter()

        @event.listens_for(engine, "after_cursor_execute")
        def receive_after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            """Log slow queries"""
            total = time.perf_counter() - context._query_start_time
            if total > app.config.get('SLOW_QUERY_THRESHOLD', 1.0):
                logger.warning(f"Slow query ({total:.2f}s): {statement[:100]}...")

    app.logger.info(f"Database configured: {database_url.split('@')[-1] if '@' in database_url else database_url}")


def configure_security(app: Flask) -> None:
    """Rate limiting for the sign-in endpoints and CORS for the JSON API"""
    limiter.init_app(app)

    CORS(app,
         resources={r'/api/*': {'origins': app.config.get('CORS_ORIGINS', ['http://localhost:3000'])}},
         supports_credentials=True,
         allow_headers=['Content-Type', 'Authorization'])

    init_token_store(app)
    app.logger.info("Security features configured")


def register_blueprints(app: Flask) -> None:
    app.register_blueprint(auth_bp)
    app.register_blueprint(onshape_bp)
    app.register_blueprint(equipment_bp)
    app.register_blueprint(processes_bp)
    app.register_blueprint(kanban_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(mfg_bp)

    app.logger.info("Application blueprints registered")


def onshape_error_status(status: int) -> int:
    """Map an Onshape API status onto the status we answer with"""
    if status in (401, 403):
        return 401
    if status == 404:
        return 404
    return 500


def configure_error_handlers(app: Flask) -> None:
    """Render every failure as {'error': message}"""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error(f"{request.method} {request.path} failed: {error.message}", exc_info=True)
        else:
            app.logger.warning(f"{request.method} {request.path} -> {error.status_code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(OnshapeApiError)
    def handle_onshape_error(error):
        status = onshape_error_status(error.status)
        app.logger.warning(f"Onshape API error {error.status} on {request.path}: {error.message}")
        return jsonify({'error': error.message}), status

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        if error.code == 429:
            app.logger.warning(f"Rate limit exceeded for {request.remote_addr}")
        return jsonify({'error': error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Handle unexpected exceptions"""
        db.session.rollback()
        app.logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500


def configure_health_checks(app: Flask) -> None:
    """
    Configure health check endpoints for monitoring and load balancing
    """
    @app.route('/health')
    def health_check():
        """Basic health check endpoint"""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': app.config.get('VERSION', '1.0.0')
        })

    @app.route('/health/detailed')
    def detailed_health_check():
        """Detailed health check with component status"""
        health_status = {
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'components': {}
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['components']['database'] = 'healthy'
        except Exception as e:
            db.session.rollback()
            health_status['components']['database'] = f'unhealthy: {str(e)}'
            health_status['status'] = 'unhealthy'

        onshape_ready = all(app.config.get(key) for key in
                            ('ONSHAPE_CLIENT_ID', 'ONSHAPE_CLIENT_SECRET', 'ONSHAPE_REDIRECT_URI'))
        health_status['components']['onshape_oauth'] = 'configured' if onshape_ready else 'not configured'
        storage_ready = bool(app.config.get('SUPABASE_URL') and app.config.get('SUPABASE_SERVICE_KEY'))
        health_status['components']['image_storage'] = 'configured' if storage_ready else 'not configured'
        if not (onshape_ready and storage_ready) and health_status['status'] == 'healthy':
            health_status['status'] = 'degraded'

        status_code = 503 if health_status['status'] == 'unhealthy' else 200
        return jsonify(health_status), status_code


def configure_request_middleware(app: Flask) -> None:
    """
    Configure request/response middleware for security and monitoring
    """
    @app.before_request
    def before_request():
        g.start_time = time.perf_counter()

    @app.after_request
    def after_request(response):
        response = security_headers(response)

        if hasattr(g, 'start_time'):
            duration = (time.perf_counter() - g.start_time) * 1000
            if duration > app.config.get('SLOW_REQUEST_THRESHOLD', 1000):
                app.logger.warning(f"Slow request ({duration:.0f}ms): {request.method} {request.path}")

        return response


def register_commands(app: Flask) -> None:
    @app.cli.command('seed-processes')
    def seed_processes_command():
        """Insert the default manufacturing processes."""
        created = seed_processes()
        print(f"Seeded {created} processes")


def create_app(config_name: str = None) -> Flask:
    """
    Flask application factory

    Args:
        config_name: Configuration environment ('development', 'testing', 'production')

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)

    config_name = config_name or os.environ.get('FLASK_ENV', 'production')
    app.config.from_object(CONFIGS.get(config_name, ProductionConfig))

    # Override with environment variables
    if config_name != 'testing':
        app.config.update({
            key: os.environ[key] for key in ENV_OVERRIDES if os.environ.get(key)
        })
    app.config['VERSION'] = os.environ.get('APP_VERSION', '1.0.0')

    # Configure proxy handling for production deployment behind a reverse proxy
    if config_name == 'production':
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
        if not os.environ.get('SECRET_KEY'):
            app.logger.warning("SECRET_KEY is not set; sessions will not survive a restart")

    setup_logging(app)
    app.logger.info(f"Starting application in {config_name} mode")

    configure_database(app)
    configure_security(app)
    register_blueprints(app)
    configure_error_handlers(app)
    configure_health_checks(app)
    configure_request_middleware(app)
    register_commands(app)

    # Create database tables (in production, use migrations instead)
    if config_name in ('development', 'testing'):
        with app.app_context():
            db.create_all()
            app.logger.info("Database tables created")

    app.logger.info("Flask application factory completed successfully")
    return app


if __name__ == '__main__':
    # Development server
    app = create_app('development')
    app.run(host='0.0.0.0', port=5000, debug=True)
