import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to app.py as subdivisync.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "subdivisync.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    APP_NAME = os.getenv("APP_NAME", "SubdiviSync")

    # Public portal URL, used to build unlock and login links in emails
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "subdivisync_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Account lockout
    MAX_FAILED_LOGINS = int(os.getenv("MAX_FAILED_LOGINS", "3"))
    UNLOCK_TOKEN_TTL_DAYS = int(os.getenv("UNLOCK_TOKEN_TTL_DAYS", "7"))

    # Unlock request justification policy
    UNLOCK_REASON_MIN_WORDS = 20
    UNLOCK_REASON_MAX_LENGTH = 1000

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    BCRYPT_ROUNDS = 12

    # Background email dispatch
    EMAIL_DISPATCH_WORKERS = int(os.getenv("EMAIL_DISPATCH_WORKERS", "2"))
    EMAIL_DISPATCH_INLINE = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Create default roles when the app starts (tables must exist)
    SEED_ROLES_ON_STARTUP = True

    # Basic app settings
    DEBUG = False


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    EMAIL_DISPATCH_INLINE = True
    BCRYPT_ROUNDS = 4
    SEED_ROLES_ON_STARTUP = False
    APP_BASE_URL = "https://portal.example.com"
