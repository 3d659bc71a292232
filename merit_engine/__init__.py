"""
Merit Engine
Flask application factory
"""
import os
import logging
from flask import Flask
from flask_cors import CORS

from .extensions import db, migrate
from .config import get_config, validate_config
from .rules import init_rules
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(config_name: str = None) -> Flask:
    """
    Application factory for creating Flask app instances.

    Args:
        config_name: Configuration environment (development, production, testing)

    Returns:
        Configured Flask application
    """
    if config_name is None:
        config_name = os.getenv('FLASK_ENV', 'development')

    # Setup logging before anything else
    setup_logging()
    validate_config(config_name)

    app = Flask(__name__)
    app.config.from_object(get_config(config_name))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Rules snapshot built from config; admin edits swap it at runtime
    init_rules(app)

    cors_origins = [
        o.strip() for o in os.getenv('CORS_ORIGINS', '').split(',') if o.strip()
    ]
    if config_name != 'production':
        cors_origins += ['http://localhost:5173', 'http://127.0.0.1:5173']
    CORS(app, origins=cors_origins, allow_headers=['Content-Type', 'Authorization', 'X-API-Key'])

    # Register blueprints
    register_blueprints(app)

    # Register CLI commands
    from .commands import init_app as init_commands
    init_commands(app)

    # Background jobs: streak rollover, season rollover check
    from .utils.scheduler import init_scheduler
    init_scheduler(app)

    # Register error handlers
    register_error_handlers(app)

    # Health check endpoint
    @app.route('/health')
    def health_check():
        return {'status': 'healthy', 'service': 'merit-engine'}

    return app


def register_blueprints(app: Flask) -> None:
    """Register all API blueprints."""
    from .api.merit import merit_bp
    from .api.leaderboard import leaderboard_bp
    from .api.admin import admin_bp
    from .api.quests import quests_bp

    app.register_blueprint(merit_bp, url_prefix='/api/merit')
    app.register_blueprint(leaderboard_bp, url_prefix='/api/leaderboard')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(quests_bp, url_prefix='/api/quests')


def register_error_handlers(app: Flask) -> None:
    """Register error handlers."""
    from .utils.errors import error_response, exception_response, ErrorCode
    from .utils.exceptions import MeritEngineError

    @app.errorhandler(MeritEngineError)
    def merit_engine_error(error):
        return exception_response(error)

    @app.errorhandler(400)
    def bad_request(error):
        return error_response('Bad request', ErrorCode.INVALID_REQUEST, 400, log_error=False)

    @app.errorhandler(404)
    def not_found(error):
        return error_response('Not found', ErrorCode.NOT_FOUND, 404, log_error=False)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return error_response('Method not allowed', ErrorCode.INVALID_REQUEST, 405, log_error=False)

    @app.errorhandler(500)
    def internal_error(error):
        return error_response('Internal server error', ErrorCode.INTERNAL_ERROR, 500)
