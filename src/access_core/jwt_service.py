"""
JWT Service - token generation and validation.

Tokens are signed and time-boxed, but a token is only honoured while its hash
is still present in the user's session table (see auth.service).
"""

from __future__ import annotations

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from flask import Request, current_app

from access_core.constants import TokenKind
from access_core.errors import TokenError, TokenExpiredError

JWT_ALGORITHM = "HS256"


def get_access_token_expiry() -> int:
    try:
        return current_app.config.get("JWT_ACCESS_TOKEN_EXPIRES_HOURS", 24)
    except RuntimeError:
        return int(os.getenv("JWT_ACCESS_TOKEN_EXPIRES_HOURS", "24"))


def get_refresh_token_expiry() -> int:
    try:
        return current_app.config.get("JWT_REFRESH_TOKEN_EXPIRES_DAYS", 7)
    except RuntimeError:
        return int(os.getenv("JWT_REFRESH_TOKEN_EXPIRES_DAYS", "7"))


def get_jwt_secret(kind: str = TokenKind.ACCESS.value) -> str:
    """Get the signing secret for the given token kind from config or environment."""
    config_key = "JWT_REFRESH_SECRET" if kind == TokenKind.REFRESH.value else "SECRET_KEY"
    try:
        secret = current_app.config.get(config_key) or current_app.config.get("SECRET_KEY")
        if secret:
            return secret
    except RuntimeError:
        pass

    env_name = "JWT_REFRESH_SECRET" if kind == TokenKind.REFRESH.value else "SECRET_KEY"
    secret = os.getenv(env_name) or os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY must be configured")
    return secret


def create_access_token(user_id: int, role: str, expires_hours: int | None = None) -> str:
    """
    Create a JWT access token for a user.

    Args:
        user_id: User database ID
        role: User role at issuance (informational; the DB role is authoritative)
        expires_hours: Token expiration in hours (default: 24)

    Returns:
        Encoded JWT token string
    """
    expires = expires_hours or get_access_token_expiry()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(hours=expires),
        "type": TokenKind.ACCESS.value,
        "jti": secrets.token_hex(8),
        "user_id": user_id,
        "role": role,
    }
    return jwt.encode(payload, get_jwt_secret(TokenKind.ACCESS.value), algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: int, expires_days: int | None = None) -> str:
    """
    Create a JWT refresh token for a user.

    Args:
        user_id: User database ID
        expires_days: Token expiration in days (default: 7)

    Returns:
        Encoded JWT refresh token string
    """
    expires = expires_days or get_refresh_token_expiry()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + timedelta(days=expires),
        "type": TokenKind.REFRESH.value,
        "jti": secrets.token_hex(8),
        "user_id": user_id,
    }
    return jwt.encode(payload, get_jwt_secret(TokenKind.REFRESH.value), algorithm=JWT_ALGORITHM)


def decode_token(token: str, verify_type: str = TokenKind.ACCESS.value) -> dict[str, Any]:
    """
    Decode and validate a JWT token.

    Args:
        token: JWT token string
        verify_type: Expected token type ('access' or 'refresh')

    Returns:
        Decoded token payload

    Raises:
        TokenExpiredError: If token has expired
        TokenError: If token is invalid or of the wrong type
    """
    try:
        payload = jwt.decode(token, get_jwt_secret(verify_type), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise TokenExpiredError()
    except jwt.InvalidTokenError as e:
        raise TokenError(str(e))

    if payload.get("type") != verify_type:
        raise TokenError(f"Expected {verify_type} token")
    if not isinstance(payload.get("user_id"), int):
        raise TokenError("Token subject missing")
    return payload


def extract_token_from_request(request: Request) -> str | None:
    """
    Extract the bearer token from the Authorization header.

    Returns:
        Token string if found, None otherwise
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        return token or None
    return None
