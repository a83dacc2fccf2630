"""Centralized authentication: credentials, session tokens and one-time tokens."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, select

from access_core.constants import PASSWORD_RESET_EXPIRES_SECONDS, Roles, TokenKind
from access_core.db import get_session
from access_core.errors import (
    AuthenticationError,
    AuthorizationError,
    EmailDeliveryError,
    TokenError,
    ValidationError,
)
from access_core.jwt_service import (
    create_access_token,
    create_refresh_token,
    decode_token,
    get_access_token_expiry,
    get_refresh_token_expiry,
)
from access_core.logging_config import get_logger
from access_core.models import User, UserToken, utcnow
from access_core.security import generate_one_time_token, hash_token, normalize_identifier
from access_core.serializers import serialize_user
from access_core.services.email_service import email_service

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INACTIVE_ACCOUNT = "Account is inactive. Please contact an administrator."


@dataclass
class CurrentUser:
    """Authenticated identity held outside of the database session."""

    id: int
    name: str
    email: str
    role: str
    status: str
    department: str | None
    token: str

    @property
    def is_admin(self) -> bool:
        return Roles.is_admin(self.role)


@dataclass
class AuthResult:
    user: dict[str, Any]
    token: str
    refresh_token: str

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token, "refresh_token": self.refresh_token, "user": self.user}


def _token_expiry(kind: str, now: datetime) -> datetime:
    if kind == TokenKind.REFRESH.value:
        return now + timedelta(days=get_refresh_token_expiry())
    return now + timedelta(hours=get_access_token_expiry())


def _record_token(session, user_id: int, token: str, kind: str) -> None:
    now = utcnow()
    # Expired rows can never authenticate again; drop them as new ones arrive.
    session.execute(
        delete(UserToken).where(UserToken.user_id == user_id, UserToken.expires_at <= now)
    )
    session.add(
        UserToken(
            user_id=user_id,
            token_hash=hash_token(token),
            kind=kind,
            created_at=now,
            expires_at=_token_expiry(kind, now),
        )
    )


def _issue_session_tokens(session, user: User) -> tuple[str, str]:
    access_token = create_access_token(user_id=user.id, role=user.role)
    refresh_token = create_refresh_token(user_id=user.id)
    _record_token(session, user.id, access_token, TokenKind.ACCESS.value)
    _record_token(session, user.id, refresh_token, TokenKind.REFRESH.value)
    return access_token, refresh_token


class AuthService:
    """Provides the login/session lifecycle and token checks."""

    @staticmethod
    def login(email: str, password: str) -> AuthResult:
        email = normalize_identifier(email)
        with get_session() as session:
            user = session.execute(select(User).where(User.email == email)).scalars().first()
            if user is None or not user.check_password(password):
                logger.warning("Failed login attempt", extra={"email": email})
                raise AuthenticationError(INVALID_CREDENTIALS)

            # Only revealed to callers who already proved the password.
            if not user.is_active:
                logger.warning("Login attempt on inactive account", extra={"user_id": user.id})
                raise AuthenticationError(INACTIVE_ACCOUNT)

            access_token, refresh_token = _issue_session_tokens(session, user)
            session.flush()
            logger.info("User logged in", extra={"user_id": user.id})
            return AuthResult(
                user=serialize_user(user), token=access_token, refresh_token=refresh_token
            )

    @staticmethod
    def register(data: dict[str, Any], verify_base_url: str) -> AuthResult:
        """
        Create an account and sign it in. Verification and welcome emails are
        best effort.
        """
        role = data.get("role") or Roles.EMPLOYEE.value
        if Roles.is_admin(role):
            raise AuthorizationError("Only admins can assign the Admin role")

        with get_session() as session:
            existing = session.execute(select(User.id).where(User.email == data["email"])).first()
            if existing:
                raise ValidationError("Email already in use")

            user = User()
            user.name = data["name"]
            user.email = data["email"]
            user.role = role
            user.department = data.get("department")
            user.phone = data.get("phone")
            user.set_password(data["password"])
            user.email_verification_token = generate_one_time_token()
            session.add(user)
            session.flush()

            access_token, refresh_token = _issue_session_tokens(session, user)
            session.flush()
            result = AuthResult(
                user=serialize_user(user), token=access_token, refresh_token=refresh_token
            )
            verification_token = user.email_verification_token
            name, email = user.name, user.email

        user_id = result.user["id"]
        logger.info("User registered", extra={"user_id": user_id})

        verify_url = f"{verify_base_url.rstrip('/')}/api/auth/verify-email/{verification_token}"
        try:
            email_service.send_verification_email(email, name, verify_url)
        except EmailDeliveryError as exc:
            logger.error(f"Verification email failed: {exc}", extra={"user_id": user_id})
        try:
            email_service.send_welcome_email(email, name)
        except EmailDeliveryError as exc:
            logger.error(f"Welcome email failed: {exc}", extra={"user_id": user_id})

        return result

    @staticmethod
    def logout(user_id: int, token: str) -> None:
        with get_session() as session:
            session.execute(
                delete(UserToken).where(
                    UserToken.user_id == user_id, UserToken.token_hash == hash_token(token)
                )
            )
        logger.info("User logged out", extra={"user_id": user_id})

    @staticmethod
    def logout_all(user_id: int) -> None:
        with get_session() as session:
            session.execute(delete(UserToken).where(UserToken.user_id == user_id))
        logger.info("User logged out from all sessions", extra={"user_id": user_id})

    @staticmethod
    def forgot_password(email: str, reset_base_url: str) -> None:
        """
        Issue a one-hour reset token and email the link. Unknown emails are a
        silent no-op so the caller can answer uniformly.
        """
        email = normalize_identifier(email)
        with get_session() as session:
            user = session.execute(select(User).where(User.email == email)).scalars().first()
            if user is None:
                logger.info("Password reset requested for unknown email")
                return
            reset_token = generate_one_time_token()
            user.password_reset_token = reset_token
            user.password_reset_expires = utcnow() + timedelta(
                seconds=PASSWORD_RESET_EXPIRES_SECONDS
            )
            user_id, name = user.id, user.name

        reset_url = f"{reset_base_url.rstrip('/')}/reset-password/{reset_token}"
        try:
            email_service.send_password_reset_email(email, name, reset_url)
        except EmailDeliveryError:
            with get_session() as session:
                user = session.get(User, user_id)
                if user is not None and user.password_reset_token == reset_token:
                    user.password_reset_token = None
                    user.password_reset_expires = None
            logger.error("Password reset email failed; token cleared", extra={"user_id": user_id})
            raise EmailDeliveryError("Error sending reset email")

        logger.info("Password reset email sent", extra={"user_id": user_id})

    @staticmethod
    def reset_password(token: str, new_password: str) -> None:
        with get_session() as session:
            user = (
                session.execute(
                    select(User).where(
                        User.password_reset_token == token,
                        User.password_reset_expires > utcnow(),
                    )
                )
                .scalars()
                .first()
            )
            if user is None:
                raise ValidationError("Password reset token is invalid or has expired")

            user.set_password(new_password)
            user.password_reset_token = None
            user.password_reset_expires = None
            logger.info("Password reset completed", extra={"user_id": user.id})

    @staticmethod
    def verify_email(token: str) -> None:
        with get_session() as session:
            user = (
                session.execute(select(User).where(User.email_verification_token == token))
                .scalars()
                .first()
            )
            if user is None:
                raise ValidationError("Email verification token is invalid")

            user.email_verified = True
            user.email_verification_token = None
            logger.info("Email verified", extra={"user_id": user.id})

    @staticmethod
    def refresh(refresh_token: str) -> str:
        """Exchange a known refresh token for a new access token."""
        try:
            payload = decode_token(refresh_token, verify_type=TokenKind.REFRESH.value)
        except TokenError:
            raise AuthenticationError("Invalid or expired refresh token")

        with get_session() as session:
            user = session.get(User, payload["user_id"])
            if user is None:
                raise AuthenticationError("User not found")

            known = session.execute(
                select(UserToken.id).where(
                    UserToken.user_id == user.id,
                    UserToken.kind == TokenKind.REFRESH.value,
                    UserToken.token_hash == hash_token(refresh_token),
                )
            ).first()
            if not known:
                raise AuthenticationError("Invalid refresh token")
            if not user.is_active:
                raise AuthenticationError(INACTIVE_ACCOUNT)

            access_token = create_access_token(user_id=user.id, role=user.role)
            _record_token(session, user.id, access_token, TokenKind.ACCESS.value)
            return access_token

    @staticmethod
    def authenticate_token(token: str) -> CurrentUser:
        """
        Resolve a bearer token to its user. Every failure is reported the same way.
        """
        try:
            payload = decode_token(token, verify_type=TokenKind.ACCESS.value)
        except TokenError as exc:
            logger.debug(f"Rejected bearer token: {exc}")
            raise AuthenticationError()

        with get_session() as session:
            user = session.get(User, payload["user_id"])
            if user is None or not user.is_active:
                raise AuthenticationError()

            known = session.execute(
                select(UserToken.id).where(
                    UserToken.user_id == user.id,
                    UserToken.kind == TokenKind.ACCESS.value,
                    UserToken.token_hash == hash_token(token),
                )
            ).first()
            if not known:
                raise AuthenticationError()

            return CurrentUser(
                id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                status=user.status,
                department=user.department,
                token=token,
            )
