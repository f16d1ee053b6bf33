from flask import jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from app.extensions import db


class AppError(Exception):
    """Error with an HTTP status and a stable machine-readable code."""

    def __init__(self, message, status_code=500, code="INTERNAL_ERROR"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code

    def to_dict(self):
        return {"success": False, "error": self.message, "code": self.code}


def error_response(message, status_code, code):
    return jsonify({"success": False, "error": message, "code": code}), status_code


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(e):
        # Discard anything a handler staged before it gave up
        db.session.rollback()
        if e.status_code >= 500:
            current_app.logger.error(f"{e.code}: {e.message}")
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(404)
    def handle_not_found(e):
        return error_response("Resource not found", 404, "NOT_FOUND")

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return error_response("Method not allowed", 405, "METHOD_NOT_ALLOWED")

    @app.errorhandler(429)
    def handle_rate_limited(e):
        return error_response(
            "Too many requests from this IP, please try again later.",
            429,
            "RATE_LIMIT_EXCEEDED",
        )

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            code = e.name.upper().replace(" ", "_")
            return error_response(e.description or e.name, e.code, code)

        try:
            db.session.rollback()
        except SQLAlchemyError:
            pass
        current_app.logger.exception(f"Unhandled error: {e}")
        return error_response("Internal server error", 500, "INTERNAL_ERROR")
