import os

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default

class BaseConfig:
    APP_ENV = os.environ.get("APP_ENV", "development").lower()
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Secrets: dev/test fall back to a throwaway key; prod is checked in create_app
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-not-secure")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    WTF_CSRF_TIME_LIMIT = None
    # The SPA sends JSON; the token comes from GET /api/csrf-token
    WTF_CSRF_HEADERS = ["X-CSRFToken", "X-CSRF-Token"]

    # Database: env first, then a local .env, then in-memory SQLite
    try:
        from dotenv import dotenv_values
        _DOTENV = dotenv_values(".env")
    except Exception:
        _DOTENV = {}
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL") or _DOTENV.get("DATABASE_URL") or "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    REMEMBER_COOKIE_HTTPONLY = True

    # Frontend origin; checkout/portal return URLs are built from it
    APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:5173")

    # --- Stripe ---
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_PUBLISHABLE_KEY = os.getenv("STRIPE_PUBLISHABLE_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_TRIAL_DAYS = _env_int("STRIPE_TRIAL_DAYS", 14)

    # Rows returned by GET /api/usage-stats
    USAGE_STATS_LIMIT = _env_int("USAGE_STATS_LIMIT", 30)

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False

class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "WARNING")
    # No fallbacks; missing values fail in create_app, not at import
    SECRET_KEY = os.environ.get("SECRET_KEY")
    WTF_CSRF_SECRET_KEY = SECRET_KEY
    SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL")
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_SAMESITE = os.environ.get("SESSION_COOKIE_SAMESITE", "Lax")
    REMEMBER_COOKIE_SECURE = True

class TestingConfig(BaseConfig):
    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = os.environ.get("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    RATELIMIT_ENABLED = False

CONFIGS = {
    "development": DevelopmentConfig,
    "staging": ProductionConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}

def get_config():
    return CONFIGS.get(os.environ.get("APP_ENV", "development").lower(), DevelopmentConfig)
