"""
Auth API - JWT-based authentication endpoints.

Handles login, registration, password reset, email verification, token
refresh and session revocation.
"""

from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request

from access_core.auth.service import AuthService
from access_core.jwt_middleware import get_current_user, jwt_required
from access_core.logging_config import get_logger
from access_core.schemas import (
    ForgotPasswordRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from access_core.security_middleware import rate_limit
from access_core.serializers import success_response
from access_core.services.user_service import get_profile

# Create blueprint without url_prefix (inherited from parent)
auth_bp = Blueprint("auth", __name__)
logger = get_logger(__name__)

RESET_SENT_MESSAGE = "If that email exists, a password reset link has been sent"


@auth_bp.post("/auth/login")
@rate_limit(max_requests=5, window_seconds=60)
def post_login():
    """
    Authenticate a user and issue an access and a refresh token.

    Body:
        {"email": str, "password": str}

    Rate limit: 5 attempts per minute
    """
    payload = request.get_json(silent=True) or {}
    login_data = LoginRequest(**payload)

    auth_result = AuthService.login(login_data.email, login_data.password)
    return jsonify(success_response(auth_result.to_dict()))


@auth_bp.post("/auth/register")
@rate_limit(max_requests=5, window_seconds=300)
def post_register():
    """
    Create an account and sign it in.

    The verification link points back at this API's verify-email endpoint.
    """
    payload = request.get_json(silent=True) or {}
    register_data = RegisterRequest(**payload)

    auth_result = AuthService.register(register_data.dict(), verify_base_url=request.host_url)
    return jsonify(success_response(auth_result.to_dict())), HTTPStatus.CREATED


@auth_bp.post("/auth/forgot-password")
@rate_limit(max_requests=3, window_seconds=300)
def post_forgot_password():
    """Always answers the same way whether or not the email is registered."""
    payload = request.get_json(silent=True) or {}
    data = ForgotPasswordRequest(**payload)

    AuthService.forgot_password(data.email, reset_base_url=current_app.config["FRONTEND_URL"])
    return jsonify(success_response(None, RESET_SENT_MESSAGE))


@auth_bp.post("/auth/reset-password")
def post_reset_password():
    payload = request.get_json(silent=True) or {}
    data = ResetPasswordRequest(**payload)

    AuthService.reset_password(data.token, data.password)
    return jsonify(success_response(None, "Password has been reset"))


@auth_bp.get("/auth/verify-email/<token>")
def get_verify_email(token: str):
    AuthService.verify_email(token)
    return jsonify(success_response(None, "Email verified"))


@auth_bp.post("/auth/refresh-token")
def post_refresh_token():
    """
    Exchange a refresh token for a new access token.

    Body:
        {"refresh_token": str}
    """
    payload = request.get_json(silent=True) or {}
    data = RefreshTokenRequest(**payload)

    access_token = AuthService.refresh(data.refresh_token)
    return jsonify(success_response({"token": access_token}))


@auth_bp.post("/auth/logout")
@jwt_required
def post_logout():
    """Revoke only the token presented with this request."""
    user = get_current_user()
    AuthService.logout(user.id, user.token)
    return jsonify(success_response(None, "Logged out"))


@auth_bp.post("/auth/logout-all")
@jwt_required
def post_logout_all():
    user = get_current_user()
    AuthService.logout_all(user.id)
    return jsonify(success_response(None, "Logged out from all sessions"))


@auth_bp.get("/auth/me")
@jwt_required
def get_me():
    return jsonify(success_response(get_profile(get_current_user())))
