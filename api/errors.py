from flask import jsonify, current_app, request
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.errors import AppError

logger = logging.getLogger(__name__)

HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "TOO_MANY_REQUESTS",
}


def error_response(error: str, message: str, status: int, details=None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def flatten_validation_messages(messages, prefix: str = "") -> list[dict]:
    """Turn marshmallow's nested messages into [{"path", "message"}, ...]."""
    items = []
    if isinstance(messages, dict):
        for key, value in messages.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            items.extend(flatten_validation_messages(value, path))
    elif isinstance(messages, list):
        for value in messages:
            items.extend(flatten_validation_messages(value, prefix))
    else:
        items.append({"path": prefix, "message": str(messages)})
    return items


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err: AppError):
        if err.status >= 500:
            logger.error("Application error: %s", err.message, exc_info=err)
        return jsonify(err.to_dict()), err.status

    # 404 Not Found for unknown routes
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", f"Cannot find {request.method} {request.path} on this server", 404)

    # Marshmallow validation errors map to 400 with field-level details
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        details = flatten_validation_messages(err.messages)
        logger.debug("Validation error on %s: %s", request.path, details)
        message = ", ".join(f"{d['path']}: {d['message']}" for d in details) or "Invalid input"
        return error_response("VALIDATION_ERROR", message, 400, details=details)

    # Integrity errors that escaped the storage layer
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        lower_msg = str(getattr(err, "orig", err)).lower()
        logger.warning("Integrity error on %s", request.path)
        if "unique constraint" in lower_msg or "unique violation" in lower_msg or "duplicate" in lower_msg:
            return error_response("CONFLICT", "Unique constraint violated.", 400)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = err.code or 400
        return error_response(HTTP_CODES.get(status, "HTTP_ERROR"), err.description, status)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        # In dev, include exception details to speed up debugging
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
