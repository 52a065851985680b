"""
Application error taxonomy and the JSON error handlers.

Every error leaves the API as ``{"success": false, "message": ...}`` with the
status code carried by the exception class.
"""
from flask import jsonify, request, current_app
from flask_wtf.csrf import CSRFError
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400
    default_message = "Validation error"


class InvalidSignatureError(AppError):
    # Stripe treats any 4xx as "do not retry this delivery"
    status_code = 400
    default_message = "Invalid webhook signature"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Authentication failed"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    default_message = "Resource conflict"


class PreconditionError(AppError):
    status_code = 409
    default_message = "Precondition failed"


class DataIntegrityError(AppError):
    """Upstream data is inconsistent with what we need to write (caller bug, not transient)."""
    status_code = 500
    default_message = "Data integrity error"


class MissingMetadataError(DataIntegrityError):
    default_message = "Subscription metadata is missing user_id or plan_id"


class PlanNotProvisionedError(AppError):
    status_code = 500
    default_message = "Plan is not configured with a Stripe price"


class ExternalServiceError(AppError):
    status_code = 502
    default_message = "Payment processor request failed"


def error_payload(message: str):
    return {"success": False, "message": message}


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        if e.status_code >= 500:
            current_app.logger.error(
                "%s %s - %s: %s", request.method, request.path, e.status_code, e.message,
                extra={"error_type": type(e).__name__},
            )
        return jsonify(error_payload(e.message)), e.status_code

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        return jsonify(error_payload(f"CSRF validation failed: {e.description}")), 400

    # 429 Too Many Requests, with Retry-After when the limiter knows it
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {}
        payload = error_payload("Too many requests")
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
            payload["retryAfter"] = int(retry_after)
        return jsonify(payload), 429, headers

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify(error_payload(e.description or e.name)), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        current_app.logger.exception("%s %s - 500: unhandled %s", request.method, request.path, type(e).__name__)
        return jsonify(error_payload("Internal Server Error")), 500
