import os
from datetime import datetime, timezone
from flask import Flask
from sqlalchemy import text

# Local/dev reads .env; production gets its environment from the platform
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .extensions import db, migrate, csrf, login_manager, limiter
from .errors import register_error_handlers
from .security import init_security
from .observability import init_logging, init_sentry, uptime_text

PROD_LIKE = ("staging", "production")
REQUIRED_IN_PROD = ("SECRET_KEY", "DATABASE_URL", "STRIPE_SECRET_KEY", "STRIPE_WEBHOOK_SECRET")


def _current_env() -> str:
    return (os.getenv("APP_ENV", "development") or "development").lower()


def _rate_limit_storage(app_env: str) -> str:
    if app_env not in PROD_LIKE:
        return "memory://"
    uri = os.environ.get("REDIS_URL")
    if not uri:
        # Never run prod without shared limiter storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    return uri


def _check_required(app) -> None:
    missing = [name for name in REQUIRED_IN_PROD if not (os.getenv(name) or app.config.get(name))]
    if missing:
        raise RuntimeError(f"Missing required environment variable(s): {', '.join(missing)}")


def _register_blueprints(app) -> None:
    from .blueprints.api import bp as api_bp
    from .blueprints.billing.routes import billing_bp
    from .blueprints.webhooks import bp as webhooks_bp

    app.register_blueprint(billing_bp, url_prefix="/api")
    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(webhooks_bp, url_prefix="/api/webhooks")


def _register_probes(app, app_env: str) -> None:
    @limiter.exempt
    @app.get("/healthz")
    def healthz():
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": uptime_text(),
            "environment": app_env,
        }, 200

    @limiter.exempt
    @app.get("/readyz")
    def readyz():
        try:
            db.session.execute(text("SELECT 1"))
        except Exception as exc:
            app.logger.error("Readiness check failed: %s", exc)
            return {"status": "not ready", "error": "Database connection failed"}, 503
        return {"status": "ready", "timestamp": datetime.now(timezone.utc).isoformat()}, 200


def create_app():
    app = Flask(__name__)
    app_env = _current_env()

    app.config["RATELIMIT_STORAGE_URI"] = _rate_limit_storage(app_env)
    app.config.setdefault("RATELIMIT_DEFAULTS", ["1000 per hour"])
    app.config.setdefault("RATELIMIT_HEADERS_ENABLED", True)
    app.config.from_object(get_config())

    if app_env in PROD_LIKE:
        _check_required(app)

    init_logging(app)
    init_sentry(app)

    if app_env in PROD_LIKE:
        # Behind the platform proxy: trust one hop for scheme and client IP
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
        init_security(app)

    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    csrf.init_app(app)
    login_manager.init_app(app)
    limiter.init_app(app)

    _register_blueprints(app)
    register_error_handlers(app)
    _register_probes(app, app_env)

    from .cli import register_cli
    register_cli(app)

    if not app.config.get("STRIPE_SECRET_KEY"):
        app.logger.warning("Stripe secret key missing; billing features will not work")

    return app
