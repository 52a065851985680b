import os
import time
import logging
from logging.config import dictConfig
from flask import has_request_context, request

_STARTED_AT = time.monotonic()

JSON_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(method)s %(path)s"


class RequestContextFilter(logging.Filter):
    """Stamp method/path on every record so JSON logs can be joined to requests."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.method = request.method
            record.path = request.path
        else:
            record.method = None
            record.path = None
        return True


def init_logging(app):
    """JSON to stdout in staging/prod; dev and tests keep Flask's console logger."""
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    level = app.config.get("LOG_LEVEL", "INFO")
    if app_env not in ("staging", "production"):
        app.logger.setLevel(level)
        return

    dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request": {"()": RequestContextFilter}},
        "formatters": {"json": {"()": "pythonjsonlogger.json.JsonFormatter", "fmt": JSON_LOG_FORMAT}},
        "handlers": {
            "stdout": {"class": "logging.StreamHandler", "formatter": "json", "filters": ["request"]},
        },
        "root": {"level": level, "handlers": ["stdout"]},
    })


def init_sentry(app):
    """Sentry when SENTRY_DSN is set; otherwise nothing."""
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        sentry_sdk.init(
            dsn=dsn,
            integrations=[FlaskIntegration()],
            environment=app.config.get("APP_ENV", "development"),
            release=os.getenv("RELEASE_SHA") or None,
            traces_sample_rate=float(os.getenv("SENTRY_TRACES", "0.0")),
            send_default_pii=False,
        )
    except Exception as exc:
        app.logger.warning("Sentry init skipped: %s", exc)


def uptime_text() -> str:
    """Process uptime as '1h 2m 3s' for the liveness probe."""
    elapsed = int(time.monotonic() - _STARTED_AT)
    return f"{elapsed // 3600}h {(elapsed % 3600) // 60}m {elapsed % 60}s"
