"""
Error taxonomy and JSON error handlers.

Route handlers and helpers raise one of the ``ApiError`` subclasses below;
the handlers registered by ``register_error_handlers`` turn them into the
``{"error": "..."}`` envelope used by every endpoint.  Werkzeug's own HTTP
errors (unknown routes, wrong methods, oversized bodies) are rendered in
the same envelope so clients never receive an HTML error page.
"""

from __future__ import annotations

import logging

from flask import Flask, Response, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from . import db

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map directly to an HTTP status code."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    """Malformed, missing or disallowed request fields."""

    status_code = 400
    default_message = "Invalid request"


class AuthError(ApiError):
    """
    Rejected login credentials.

    Reported as 400 with a single message whether the email is unknown or
    the password is wrong.
    """

    status_code = 400
    default_message = "Unable to login"


class Unauthorized(ApiError):
    """Missing, malformed, forged or revoked bearer token."""

    status_code = 401
    default_message = "Please authenticate"


class NotFound(ApiError):
    """Missing resource, or a resource owned by somebody else."""

    status_code = 404
    default_message = "Resource not found"


class ServerError(ApiError):
    """Unexpected storage or internal failure."""

    status_code = 500


def _json_error(message: str, status_code: int) -> tuple[Response, int]:
    """Build the standard ``{"error": ...}`` response."""
    return jsonify({"error": message}), status_code


def register_error_handlers(app: Flask) -> None:
    """Attach the JSON error handlers to *app*."""

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError) -> tuple[Response, int]:
        if error.status_code >= 500:
            logger.error("Server error: %s", error.message)
        return _json_error(error.message, error.status_code)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error: SQLAlchemyError) -> tuple[Response, int]:
        db.session.rollback()
        logger.exception("Storage failure: %s", error)
        return _json_error(ServerError.default_message, ServerError.status_code)

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(_: RequestEntityTooLarge) -> tuple[Response, int]:
        # Size-ceiling violations are reported as ordinary validation failures
        return _json_error("File too large", 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException) -> tuple[Response, int]:
        status_code = error.code or 500
        if status_code == 404:
            return _json_error("Resource not found", 404)
        if status_code >= 500:
            logger.error("Internal server error: %s", error)
            return _json_error("Internal server error", status_code)
        return _json_error(error.description or "Bad request", status_code)
