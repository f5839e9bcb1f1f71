"""Environment-aware configuration for the Flask application."""
import os
from datetime import timedelta


class BaseConfig:
    def __init__(self) -> None:
        # Defaults for local dev: SQLite db and a non-empty secret. Override via env for production.
        self.SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-me")
        db_url = os.getenv("DATABASE_URL")
        if db_url:
            # Render/Heroku hand out postgres:// which SQLAlchemy no longer accepts.
            if db_url.startswith("postgres://"):
                db_url = db_url.replace("postgres://", "postgresql://", 1)
            self.SQLALCHEMY_DATABASE_URI = db_url
        else:
            self.SQLALCHEMY_DATABASE_URI = os.getenv(
                "SQLITE_URL",
                f"sqlite:///{os.path.join(os.getcwd(), 'instance', 'swm.db')}",
            )
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False
        self.SESSION_COOKIE_HTTPONLY = True
        self.SESSION_COOKIE_SAMESITE = "Lax"
        self.PREFERRED_URL_SCHEME = os.getenv("PREFERRED_URL_SCHEME", "https")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_DIR = os.getenv("LOG_DIR", os.path.join(os.getcwd(), "logs"))
        self.MAX_CONTENT_LENGTH = int(os.getenv("MAX_REQUEST_BYTES", 16 * 1024 * 1024))

        self.OTP_LENGTH = int(os.getenv("OTP_LENGTH", 6))
        self.OTP_TTL_SECONDS = int(os.getenv("OTP_TTL_SECONDS", 300))
        self.ACCESS_TOKEN_TTL = timedelta(hours=int(os.getenv("ACCESS_TOKEN_TTL_HOURS", 24)))
        self.SMS_GATEWAY_URL = os.getenv("SMS_GATEWAY_URL", "")
        self.SMS_GATEWAY_KEY = os.getenv("SMS_GATEWAY_KEY", "")
        self.SMS_GATEWAY_TIMEOUT = int(os.getenv("SMS_GATEWAY_TIMEOUT", 15))

        self.ALLOW_DEFAULT_USERS = os.getenv("ALLOW_DEFAULT_USERS", "false").lower() == "true"
        self.DEFAULT_SUPERVISOR_USERNAME = os.getenv("DEFAULT_SUPERVISOR_USERNAME", "supervisor1")
        self.DEFAULT_SUPERVISOR_PASSWORD = os.getenv("DEFAULT_SUPERVISOR_PASSWORD", "supervisor123")
        self.DEFAULT_ADMIN_USERNAME = os.getenv("DEFAULT_ADMIN_USERNAME", "admin1")
        self.DEFAULT_ADMIN_PASSWORD = os.getenv("DEFAULT_ADMIN_PASSWORD", "admin123")

        self.QUBE_DEFAULT_WARD = os.getenv("QUBE_DEFAULT_WARD", "Gopalpur NAC")
        self.VEHICLE_POLL_SECONDS = int(os.getenv("VEHICLE_POLL_SECONDS", 30))


class DevelopmentConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = True
        self.ENV = "development"
        self.SESSION_COOKIE_SECURE = False
        self.ALLOW_DEFAULT_USERS = os.getenv("ALLOW_DEFAULT_USERS", "true").lower() == "true"


class ProductionConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.DEBUG = False
        self.ENV = "production"
        self.SESSION_COOKIE_SECURE = True


class TestingConfig(BaseConfig):
    def __init__(self) -> None:
        super().__init__()
        self.TESTING = True
        self.DEBUG = False
        self.ENV = "testing"
        self.SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite://")
        self.SESSION_COOKIE_SECURE = False
        self.PREFERRED_URL_SCHEME = "http"
        self.LOG_LEVEL = "WARNING"
        self.LOG_DIR = ""
        self.SMS_GATEWAY_URL = ""
        self.ALLOW_DEFAULT_USERS = True
