import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _engine_options(uri: str, timeout: int) -> dict:
    # sqlite and network drivers name the connect timeout differently
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {"connect_args": {"connect_timeout": timeout}, "pool_pre_ping": True}


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as mediconnect.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "mediconnect.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bounded wait on the booking store
    STORE_TIMEOUT_SECONDS = int(os.getenv("STORE_TIMEOUT_SECONDS", "10"))
    SQLALCHEMY_ENGINE_OPTIONS = _engine_options(SQLALCHEMY_DATABASE_URI, STORE_TIMEOUT_SECONDS)

    # 8 hours bearer session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 30 minutes
    IDLE_TIMEOUT_SECONDS = 30 * 60

    # Stripe hosted checkout
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_CURRENCY = os.getenv("STRIPE_CURRENCY", "inr")
    STRIPE_TIMEOUT_SECONDS = int(os.getenv("STRIPE_TIMEOUT_SECONDS", "15"))
    STRIPE_MAX_NETWORK_RETRIES = int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2"))

    # Frontend origin used for checkout success/cancel redirects
    APP_ORIGIN = os.getenv("APP_ORIGIN", "http://localhost:3000").rstrip("/")
    ALLOWED_ORIGINS = [
        o.strip().rstrip("/")
        for o in os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
        if o.strip()
    ]

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"

    # Confirmation emails run on a small background pool
    NOTIFY_MAX_WORKERS = int(os.getenv("NOTIFY_MAX_WORKERS", "2"))
    BRAND_NAME = os.getenv("BRAND_NAME", "MediConnect")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Basic app settings
    DEBUG = False
