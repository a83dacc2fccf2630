"""
Centralized error handlers for Flask applications.
"""

import re
import traceback
from http import HTTPStatus

from flask import Flask, current_app, jsonify
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.exceptions import HTTPException

from access_core.errors import AppError, DuplicateKeyError
from access_core.logging_config import get_logger
from access_core.serializers import error_response

logger = get_logger(__name__)

# sqlite: "UNIQUE constraint failed: shipments.tracking_number"
# postgres: 'duplicate key value violates unique constraint ... DETAIL:  Key (email)=(...)'
_SQLITE_UNIQUE = re.compile(r"UNIQUE constraint failed: \w+\.(\w+)")
_POSTGRES_UNIQUE = re.compile(r"Key \((\w+)\)=")


def duplicate_field_from_integrity_error(exc: IntegrityError) -> str | None:
    """Return the column name of a unique violation, or None for other integrity errors."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in (_SQLITE_UNIQUE, _POSTGRES_UNIQUE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def _pydantic_messages(e: PydanticValidationError) -> list[str]:
    messages = []
    for err in e.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "__root__")
        message = err.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return messages


def register_error_handlers(app: Flask) -> None:
    """
    Register centralized error handlers for the Flask app.

    Args:
        app: Flask application instance
    """

    @app.errorhandler(AppError)
    def handle_app_error(e: AppError):
        """Handle expected domain errors (validation, auth, not found...)."""
        if e.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
            logger.error(f"{type(e).__name__}: {e.message}")
        else:
            logger.warning(f"{type(e).__name__}: {e.message}")
        return jsonify(error_response(e.message)), e.status_code

    @app.errorhandler(PydanticValidationError)
    def handle_pydantic_validation_error(e: PydanticValidationError):
        """Handle request body validation errors."""
        messages = _pydantic_messages(e)
        logger.warning(f"Request validation error: {messages}")
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
            for err in e.errors()
        ]
        return jsonify(error_response(", ".join(messages), details)), HTTPStatus.BAD_REQUEST

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e: IntegrityError):
        """Unique-index collisions become DuplicateKeyError responses."""
        field = duplicate_field_from_integrity_error(e)
        if field is None:
            logger.error(f"Integrity error: {e}", exc_info=True)
            return jsonify(error_response("Database constraint violated")), HTTPStatus.BAD_REQUEST
        return handle_app_error(DuplicateKeyError(field))

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e: SQLAlchemyError):
        """Handle database errors."""
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(error_response("Database error")), HTTPStatus.INTERNAL_SERVER_ERROR

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        """Handle HTTP exceptions from Werkzeug."""
        logger.warning(f"HTTP exception {e.code}: {e.description}")
        return jsonify(error_response(e.description or str(e))), e.code

    @app.errorhandler(Exception)
    def handle_generic_exception(e: Exception):
        """Handle any unhandled exceptions."""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        details = None
        if not current_app.config.get("IS_PRODUCTION", False):
            details = {
                "message": str(e),
                "stack": "".join(traceback.format_exception(type(e), e, e.__traceback__)),
            }
        return jsonify(
            error_response("Internal server error", details)
        ), HTTPStatus.INTERNAL_SERVER_ERROR
