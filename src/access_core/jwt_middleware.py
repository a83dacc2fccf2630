"""
JWT Middleware for Flask.

Resolves the bearer token once per request and injects the identity into
``g.current_user``. Route decorators then gate on authentication and role.
"""

from __future__ import annotations

import logging
from functools import wraps
from http import HTTPStatus
from typing import TYPE_CHECKING

from flask import g, jsonify, request

from access_core.auth.service import AuthService, CurrentUser
from access_core.errors import AuthenticationError
from access_core.jwt_service import extract_token_from_request
from access_core.serializers import error_response

if TYPE_CHECKING:
    from flask import Flask

logger = logging.getLogger(__name__)

AUTH_FAILED = "Authentication failed"
PERMISSION_DENIED = "Permission denied"


def init_jwt_middleware(app: Flask) -> None:
    """
    Initialize JWT middleware for a Flask app.

    Sets up a before_request handler that validates the bearer token against
    the session table and stores the identity in g.current_user.
    """

    @app.before_request
    def load_jwt_user():
        g.current_user = None

        token = extract_token_from_request(request)
        if not token:
            return

        try:
            g.current_user = AuthService.authenticate_token(token)
        except AuthenticationError:
            logger.debug(f"Rejected bearer token on {request.path}")


def get_current_user() -> CurrentUser | None:
    """Get the authenticated identity from the request context."""
    return getattr(g, "current_user", None)


def jwt_required(f):
    """
    Decorator to require a valid, still-registered bearer token.

    Returns 401 without saying which check failed.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if get_current_user() is None:
            return jsonify(error_response(AUTH_FAILED)), HTTPStatus.UNAUTHORIZED
        return f(*args, **kwargs)

    return decorated_function


def role_required(required_roles: str | list[str]):
    """
    Decorator factory to require one of the given roles.

    Args:
        required_roles: Required role(s)
    """
    if isinstance(required_roles, str):
        required_roles = [required_roles]
    allowed = {str(getattr(role, "value", role)) for role in required_roles}

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = get_current_user()
            if user is None:
                return jsonify(error_response(AUTH_FAILED)), HTTPStatus.UNAUTHORIZED

            if user.role not in allowed:
                logger.warning(
                    f"Role check failed: role={user.role}, required={sorted(allowed)}, "
                    f"path={request.path}"
                )
                return jsonify(error_response(PERMISSION_DENIED)), HTTPStatus.FORBIDDEN

            return f(*args, **kwargs)

        return decorated_function

    return decorator


def admin_required(f):
    """Decorator to require the Admin role."""
    return role_required("Admin")(f)
