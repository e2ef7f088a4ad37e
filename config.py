import os
import secrets
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


class Config:
    # Generate a secure key if not provided (with warning)
    _secret_key = os.environ.get("SECRET_KEY")

    if not _secret_key:
        _secret_key = secrets.token_urlsafe(32)
        warnings.warn(
            "🔐 SECRET_KEY not set! Using auto-generated key. "
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
            db_name = os.environ.get("DB_NAME") or "quinielas_db"
            db_user = os.environ.get("DB_USER") or "quinielas_user"
            db_password = os.environ.get("DB_PASSWORD") or "quinielas_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Football data provider (API-Football)
    FOOTBALL_API_URL = (
        os.environ.get("FOOTBALL_API_URL") or "https://v3.football.api-sports.io"
    )
    FOOTBALL_API_KEY = os.environ.get("FOOTBALL_API_KEY")
    FOOTBALL_API_TIMEOUT = float(os.environ.get("FOOTBALL_API_TIMEOUT") or 15)
    FOOTBALL_API_MAX_REQUESTS_PER_MINUTE = int(
        os.environ.get("FOOTBALL_API_MAX_REQUESTS_PER_MINUTE") or 30
    )
    FIXTURES_CACHE_TTL = int(os.environ.get("FIXTURES_CACHE_TTL") or 1800)  # 30 minutes
    ROUNDS_CACHE_TTL = int(os.environ.get("ROUNDS_CACHE_TTL") or 3600)  # 1 hour

    # Survivor settings
    TIMEZONE = os.environ.get("TIMEZONE", "America/Mexico_City")
    FIXTURE_FETCH_WORKERS = int(os.environ.get("FIXTURE_FETCH_WORKERS") or 4)
    PICK_LOCK_MINUTES = int(os.environ.get("PICK_LOCK_MINUTES") or 5)
    CRON_SECRET = os.environ.get("CRON_SECRET")

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "RedisCache")
    CACHE_DEFAULT_TIMEOUT = int(
        os.environ.get("CACHE_DEFAULT_TIMEOUT", 300)
    )  # 5 minutes
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "quinielas:"

    # Rate limiting for the HTTP surface
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")

    # Scheduler configuration
    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "True").lower() == "true"
    SURVIVOR_RESULTS_INTERVAL_MINUTES = int(
        os.environ.get("SURVIVOR_RESULTS_INTERVAL_MINUTES") or 30
    )

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = os.environ.get("LOG_TO_CONSOLE", "True").lower() == "true"
    LOG_TO_FILE = os.environ.get("LOG_TO_FILE", "True").lower() == "true"
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    SLOW_FUNCTION_THRESHOLD = float(os.environ.get("SLOW_FUNCTION_THRESHOLD", "5.0"))

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"

    def __init__(self):
        super().__init__()
        # Fallback to SimpleCache if Redis isn't available in development
        import redis

        try:
            redis_client = redis.Redis.from_url(self.CACHE_REDIS_URL)
            redis_client.ping()
        except redis.exceptions.ConnectionError:
            self.CACHE_TYPE = "SimpleCache"
            warnings.warn(
                "🔶 Redis not available, falling back to SimpleCache for development. "
                "Fixture responses will only be cached per process.",
                UserWarning,
            )


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    # In production, require explicit environment variables
    def __init__(self):
        super().__init__()  # Call parent __init__ to build database URI

        if not os.environ.get("SECRET_KEY"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: SECRET_KEY not explicitly set! "
                "Using auto-generated key is not recommended for production.",
                UserWarning,
            )
        if not os.environ.get("FOOTBALL_API_KEY"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: FOOTBALL_API_KEY not set! "
                "Every round will stay pending until it is configured.",
                UserWarning,
            )
        if not os.environ.get("CRON_SECRET"):
            warnings.warn(
                "🚨 PRODUCTION WARNING: CRON_SECRET not set! "
                "The results endpoint can be triggered by anyone.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    CACHE_TYPE = "SimpleCache"
    SCHEDULER_ENABLED = False
    RATELIMIT_ENABLED = False
    LOG_TO_FILE = False
    FOOTBALL_API_KEY = "test-key"
    FOOTBALL_API_URL = "https://football.test"
    CRON_SECRET = None

    def __init__(self):
        # Keep the in-memory database regardless of DATABASE_URL
        pass


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
