from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from services.errors import (
    AppError,
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    PersistenceError,
    UnauthorizedError,
    ValidationFailedError,
)

logger = logging.getLogger(__name__)

# most specific first; anything else derived from AppError is a 400
STATUS_BY_ERROR = (
    (InvalidCredentialsError, 401),
    (UnauthorizedError, 401),
    (ConflictError, 409),
    (PersistenceError, 409),
    (ValidationFailedError, 422),
    (NotFoundError, 404),
    (ConfigurationError, 500),
)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def status_for(err: AppError) -> int:
    for error_type, status in STATUS_BY_ERROR:
        if isinstance(err, error_type):
            return status
    return 400


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        status = status_for(err)
        if status >= 500:
            logger.error("Server-side failure: %s", err.code, exc_info=err)
            return error_response(err.code, "An unexpected error occurred", status)
        response, status = error_response(err.code, err.message, status, details=err.details)
        if status == 401:
            response.headers["WWW-Authenticate"] = "Bearer"
        return response, status

    # Marshmallow validation errors map to 422
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response(ValidationFailedError.code, "Invalid input", 422, details=err.messages)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        error = (err.name or "HTTP_ERROR").upper().replace(" ", "_")
        return error_response(error, err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
