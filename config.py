import os
import secrets
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _env_bool(name, default):
    return os.environ.get(name, str(default)).lower() in ["true", "on", "1"]


def redis_available(url):
    """Check whether a Redis server answers at the given URL"""
    if not url:
        return False
    try:
        import redis
    except ImportError:
        return False

    try:
        redis.Redis.from_url(url).ping()
    except redis.exceptions.RedisError:
        return False
    return True


class Config:
    _secret_key = os.environ.get("SECRET_KEY")

    if not _secret_key:
        _secret_key = secrets.token_urlsafe(32)
        warnings.warn(
            "SECRET_KEY not set! Using auto-generated key. "
            "Run 'python3 generate_secrets.py' to generate a secure key.",
            UserWarning,
        )

    SECRET_KEY = _secret_key

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "squadpicks_db"
            db_user = os.environ.get("DB_USER") or "squadpicks"
            db_password = os.environ.get("DB_PASSWORD") or "squadpicks"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Identity: the upstream identity provider forwards the authenticated user id
    IDENTITY_HEADER = os.environ.get("IDENTITY_HEADER", "X-Authenticated-User")

    # Pick window, evaluated in the product's home timezone
    TIMEZONE = os.environ.get("TIMEZONE", "Europe/Dublin")
    SEASON_YEAR = int(os.environ.get("SEASON_YEAR", 2025))
    SEASON_START_DATE = os.environ.get("SEASON_START_DATE", "2025-09-05")
    SEASON_WEEKS = int(os.environ.get("SEASON_WEEKS", 18))
    PICKS_OPEN_WEEKDAY = int(os.environ.get("PICKS_OPEN_WEEKDAY", 4))  # Friday
    PICKS_OPEN_HOUR = int(os.environ.get("PICKS_OPEN_HOUR", 5))
    PICKS_LOCK_WEEKDAY = int(os.environ.get("PICKS_LOCK_WEEKDAY", 5))  # Saturday
    PICKS_LOCK_HOUR = int(os.environ.get("PICKS_LOCK_HOUR", 12))
    PICKS_PER_WEEK = 3

    # Lines: the mid-week snapshot wins over later market moves when present
    PREFERRED_LINE_SOURCE = os.environ.get(
        "PREFERRED_LINE_SOURCE", "odds-api-wednesday"
    )

    # Payout model (points are fixed: 1 / 0.5 / 0)
    WIN_PAYOUT = float(os.environ.get("WIN_PAYOUT", 1.0))
    PUSH_PAYOUT = float(os.environ.get("PUSH_PAYOUT", 0.0))
    LOSS_PAYOUT = float(os.environ.get("LOSS_PAYOUT", -1.0))

    # "current" or "at_pick_time"
    SQUAD_MEMBERSHIP_MODE = os.environ.get("SQUAD_MEMBERSHIP_MODE", "current")
    # "active_before_lock", "any_pick_history" or "all"
    PENALTY_ELIGIBILITY = os.environ.get("PENALTY_ELIGIBILITY", "active_before_lock")

    # Socket.IO
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "eventlet")
    SOCKETIO_CORS_ORIGINS = os.environ.get("SOCKETIO_CORS_ORIGINS", "*")

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "squadpicks:"

    # Rate limiting
    RATELIMIT_ENABLED = _env_bool("RATELIMIT_ENABLED", True)
    SUBMISSION_RATE_LIMIT = os.environ.get("SUBMISSION_RATE_LIMIT", "30 per minute")

    # Scheduler configuration
    SCHEDULER_ENABLED = _env_bool("SCHEDULER_ENABLED", True)
    GRADING_SWEEP_MINUTES = int(os.environ.get("GRADING_SWEEP_MINUTES", 5))
    BACKFILL_HOUR = int(os.environ.get("BACKFILL_HOUR", 6))

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = _env_bool("LOG_TO_CONSOLE", True)
    LOG_TO_FILE = _env_bool("LOG_TO_FILE", True)
    LOG_DIR = os.environ.get("LOG_DIR", "logs")

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = _env_bool("SQLALCHEMY_ECHO", False)

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        if not redis_available(self.CACHE_REDIS_URL):
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "Redis not available, falling back to SimpleCache for development. "
                "Start a Redis server at CACHE_REDIS_URL to use RedisCache.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    def __init__(self):
        super().__init__()

        if not os.environ.get("SECRET_KEY"):
            warnings.warn(
                "PRODUCTION WARNING: SECRET_KEY not explicitly set! "
                "Using auto-generated key is not recommended for production.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    SOCKETIO_ASYNC_MODE = "threading"
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False
    SQUAD_MEMBERSHIP_MODE = "current"
    PENALTY_ELIGIBILITY = "active_before_lock"

    def __init__(self):
        # In-memory database regardless of DATABASE_URL
        self.SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
