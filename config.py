"""Environment-aware configuration for the complaint portal."""
import os
from datetime import timedelta


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        self.JWT_SECRET = os.getenv("JWT_SECRET", "dev-only-change-this")
        self.JWT_EXPIRES_HOURS = int(os.getenv("JWT_EXPIRES_HOURS", 24))
        db_url = os.getenv("DATABASE_URL")
        # If DATABASE_URL points to a placeholder host (e.g., db_host) or is missing, fall back to SQLite for local dev.
        if db_url and "db_host" not in db_url:
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'complaints.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SQLALCHEMY_ENGINE_OPTIONS = {
            "pool_size": int(os.getenv("DB_POOL_SIZE", 10)),
            "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 20)),
            "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", 30)),
            "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", 1800)),
        }
        self.SESSION_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.WTF_CSRF_ENABLED = True
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.LOG_FILE_NAME = os.getenv("LOG_FILE_NAME", "complaints.log")
        self.LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", 5_000_000))
        self.LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", 5))
        self.UPLOAD_URL_PREFIX = os.getenv("UPLOAD_URL_PREFIX", "/uploads")
        self.WITHDRAW_RETENTION_DAYS = int(os.getenv("WITHDRAW_RETENTION_DAYS", 30))
        self.ANON_COOKIE_NAME = os.getenv("ANON_COOKIE_NAME", "anon_vote_id")
        self.ANON_COOKIE_MAX_AGE = timedelta(days=int(os.getenv("ANON_COOKIE_MAX_AGE_DAYS", 365)))
        self.ANON_COOKIE_SECURE = os.getenv("ANON_COOKIE_SECURE", "false").lower() == "true"
        self.RETENTION_SWEEPER_ENABLED = os.getenv("RETENTION_SWEEPER_ENABLED", "true").lower() == "true"
        self.PURGE_INTERVAL_HOURS = float(os.getenv("PURGE_INTERVAL_HOURS", 6))
        self.PURGE_INITIAL_DELAY_SECONDS = float(os.getenv("PURGE_INITIAL_DELAY_SECONDS", 15))
        self.NOTIFICATION_INBOX_LIMIT = int(os.getenv("NOTIFICATION_INBOX_LIMIT", 50))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.SESSION_COOKIE_SECURE = False


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SESSION_COOKIE_SECURE = True
        self.ANON_COOKIE_SECURE = os.getenv("ANON_COOKIE_SECURE", "true").lower() == "true"


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.ENV = "testing"
        self.SECRET_KEY = "testing-secret"
        self.JWT_SECRET = "testing-jwt-secret"
        self.SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite://")
        # In-memory SQLite runs on a static pool that rejects sizing options.
        self.SQLALCHEMY_ENGINE_OPTIONS = {}
        if self.SQLALCHEMY_DATABASE_URI.startswith("sqlite:///"):
            # File databases are shared by concurrent test threads; writers wait on the lock.
            self.SQLALCHEMY_ENGINE_OPTIONS = {"connect_args": {"check_same_thread": False, "timeout": 30}}
        self.WTF_CSRF_ENABLED = False
        self.WITHDRAW_RETENTION_DAYS = 30
        self.RETENTION_SWEEPER_ENABLED = False
        self.ANON_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"
