"""
Domain exceptions. Each carries the HTTP status the error handlers respond with.
"""

from __future__ import annotations

from collections.abc import Iterable
from http import HTTPStatus


class AppError(Exception):
    """Base exception for expected, client-facing failures."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ValidationError(AppError):
    """Raised when validation fails. Multiple messages are joined."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, messages: str | Iterable[str]):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(", ".join(self.messages))


class DuplicateKeyError(AppError):
    """A unique column already holds the submitted value."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} already exists")


class AuthenticationError(AppError):
    status_code = HTTPStatus.UNAUTHORIZED

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message)


class TokenError(AuthenticationError):
    """Token is invalid or malformed."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    """Token has expired."""

    def __init__(self):
        super().__init__("Token expired")


class AuthorizationError(AppError):
    status_code = HTTPStatus.FORBIDDEN

    def __init__(self, message: str = "Permission denied"):
        super().__init__(message)


class NotFoundError(AppError):
    status_code = HTTPStatus.NOT_FOUND

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class EmailDeliveryError(AppError):
    """Outbound email could not be handed to the SMTP server."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
