import logging
import os

from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy

from config import config, redis_available

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies like Traefik.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


# Use Redis in production for shared rate limiting across multiple workers
limiter_storage_uri = "memory://"
redis_url = os.environ.get("REDIS_URL") or os.environ.get("CACHE_REDIS_URL")
if redis_url and redis_available(redis_url):
    limiter_storage_uri = redis_url

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
    storage_uri=limiter_storage_uri,
)


def create_app(config_name=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())

    # Build the pick window once; bad anchors fail at startup, not on first request
    from squadpicks.utils.week_window import WeekWindow

    app.extensions["week_window"] = WeekWindow.from_config(app.config)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    allowed_origins = app.config.get("SOCKETIO_CORS_ORIGINS", "*")
    if allowed_origins == "*" and not app.config.get("DEBUG") and not app.testing:
        allowed_origins = os.environ.get(
            "ALLOWED_ORIGINS", "https://yourdomain.com,https://www.yourdomain.com"
        ).split(",")

    message_queue = None
    queue_url = app.config.get("CACHE_REDIS_URL") or os.environ.get("REDIS_URL")
    if not app.testing and redis_available(queue_url):
        message_queue = queue_url

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode=app.config.get("SOCKETIO_ASYNC_MODE", "eventlet"),
        ping_timeout=60,
        ping_interval=25,
        message_queue=message_queue,
    )
    cache.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    from squadpicks.identity import register_identity

    register_identity(app)

    from squadpicks.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    register_error_handlers(app)

    from squadpicks.utils.logging_config import setup_logging

    setup_logging(app)

    show_config_warnings(app, config_name)

    with app.app_context():
        db.create_all()

    if not app.config.get("TESTING", False):
        from squadpicks.services.scheduler_service import scheduler_service

        scheduler_service.init_app(app)

    from squadpicks import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def show_config_warnings(app, config_name):
    """Log configuration warnings and status"""
    import warnings

    logger.info(f"Squad Picks starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        warnings.warn("DEBUG mode is enabled in production!", UserWarning)

    window = app.extensions["week_window"]
    logger.info(
        f"Pick window: {app.config['TIMEZONE']}, season {window.season_year}, "
        f"{window.season_weeks} weeks from {window.season_start_date.isoformat()}"
    )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        logger.info("Using SQLite database")
    elif "postgresql" in db_url:
        logger.info("Using PostgreSQL database")
    else:
        logger.info(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )


def register_error_handlers(app):
    """Register global error handlers"""
    from squadpicks.errors import PickError

    @app.after_request
    def after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        return response

    @app.errorhandler(PickError)
    def handle_pick_error(error):
        db.session.rollback()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "bad_request", "message": "Bad request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return jsonify({"error": "rate_limited", "message": "Too many requests"}), 429


from squadpicks import models  # noqa: F401, E402 - imported for model registration
