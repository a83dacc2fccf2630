"""Service for managing user records."""

from __future__ import annotations

from typing import Any

from sqlalchemy import delete, select

from access_core.auth.service import CurrentUser
from access_core.constants import KeyStatus, ShipmentStatus, TokenKind, VisitorStatus
from access_core.db import get_session
from access_core.errors import AuthorizationError, NotFoundError, ValidationError
from access_core.logging_config import get_logger
from access_core.models import Key, Shipment, User, UserToken, Visitor
from access_core.security import hash_token
from access_core.serializers import serialize_user
from access_core.validation import validate_role

logger = get_logger(__name__)

ADMIN_ONLY_FIELDS = {"role", "status"}
NON_NULLABLE_FIELDS = {"name", "email", "role", "status"}
OPEN_VISITOR_STATUSES = (
    VisitorStatus.PRE_REGISTERED.value,
    VisitorStatus.APPROVED.value,
    VisitorStatus.CHECKED_IN.value,
)


def _sorted_by_name(users: list[User]) -> list[dict[str, Any]]:
    # Names are encrypted at rest, so ordering happens after decryption.
    return sorted((serialize_user(user) for user in users), key=lambda u: u["name"].lower())


def _get_or_404(session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        logger.warning(f"User {user_id} not found")
        raise NotFoundError("User not found")
    return user


def _ensure_email_available(session, email: str, exclude_id: int | None = None) -> None:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if session.execute(stmt).first():
        raise ValidationError("Email already in use")


def _merge_preferences(user: User, preferences: dict[str, bool | None]) -> None:
    merged = user.preferences()
    merged.update({k: v for k, v in preferences.items() if v is not None})
    user.notification_preferences = merged


def _apply_fields(user: User, data: dict[str, Any]) -> None:
    for field_name, value in data.items():
        if value is None and field_name in NON_NULLABLE_FIELDS:
            continue
        if field_name == "notification_preferences":
            if value is not None:
                _merge_preferences(user, value)
        else:
            setattr(user, field_name, value)


def list_users() -> list[dict[str, Any]]:
    with get_session() as session:
        users = session.execute(select(User)).scalars().all()
        return _sorted_by_name(users)


def list_users_by_role(role: str) -> list[dict[str, Any]]:
    validate_role(role)
    with get_session() as session:
        users = session.execute(select(User).where(User.role == role)).scalars().all()
        return _sorted_by_name(users)


def list_users_by_department(department: str) -> list[dict[str, Any]]:
    with get_session() as session:
        users = session.execute(select(User).where(User.department == department)).scalars().all()
        return _sorted_by_name(users)


def get_user(actor: CurrentUser, user_id: int) -> dict[str, Any]:
    """Fetch a user. Non-admins may only read their own record."""
    with get_session() as session:
        user = _get_or_404(session, user_id)
        if not actor.is_admin and actor.id != user.id:
            raise AuthorizationError()
        return serialize_user(user)


def create_user(data: dict[str, Any]) -> dict[str, Any]:
    with get_session() as session:
        _ensure_email_available(session, data["email"])

        user = User()
        user.set_password(data.pop("password"))
        _apply_fields(user, data)
        session.add(user)
        session.flush()

        logger.info(f"Created user {user.id} with role {user.role}")
        return serialize_user(user)


def update_user(actor: CurrentUser, user_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """
    Update a user. Self or Admin only; role and status changes are Admin only.
    """
    with get_session() as session:
        user = _get_or_404(session, user_id)
        if not actor.is_admin and actor.id != user.id:
            raise AuthorizationError()
        if not actor.is_admin and ADMIN_ONLY_FIELDS & data.keys():
            raise AuthorizationError("Only admins can change roles")

        if data.get("email") and data["email"] != user.email:
            _ensure_email_available(session, data["email"], exclude_id=user.id)

        _apply_fields(user, data)
        session.flush()
        logger.info(f"User {user.id} updated by {actor.id}: {sorted(data.keys())}")
        return serialize_user(user)


def _ensure_deletable(session, user_id: int) -> None:
    """
    Refuse to delete a user still tied to open custody or pending work.

    Closed history (returned keys, checked-out visitors, delivered shipments)
    keeps its rows with the reference nulled.
    """
    holds_key = session.execute(
        select(Key.id).where(
            Key.assigned_to_id == user_id,
            Key.status == KeyStatus.CHECKED_OUT.value,
        )
    ).first()
    if holds_key:
        raise ValidationError("Cannot delete a user who holds a checked-out key")

    hosts_visitor = session.execute(
        select(Visitor.id).where(
            Visitor.host_id == user_id, Visitor.status.in_(OPEN_VISITOR_STATUSES)
        )
    ).first()
    if hosts_visitor:
        raise ValidationError("Cannot delete a user who is hosting active visitors")

    awaits_shipment = session.execute(
        select(Shipment.id).where(
            Shipment.recipient_id == user_id,
            Shipment.status != ShipmentStatus.DELIVERED.value,
        )
    ).first()
    if awaits_shipment:
        raise ValidationError("Cannot delete a user with undelivered shipments")


def delete_user(user_id: int) -> None:
    with get_session() as session:
        user = _get_or_404(session, user_id)
        _ensure_deletable(session, user_id)
        session.delete(user)
        logger.info(f"Deleted user {user_id}")


def get_profile(actor: CurrentUser) -> dict[str, Any]:
    with get_session() as session:
        return serialize_user(_get_or_404(session, actor.id))


def update_profile(actor: CurrentUser, data: dict[str, Any]) -> dict[str, Any]:
    with get_session() as session:
        user = _get_or_404(session, actor.id)
        _apply_fields(user, data)
        session.flush()
        return serialize_user(user)


def change_password(actor: CurrentUser, current_password: str, new_password: str) -> None:
    """
    Change the caller's password and revoke every other session token.
    """
    with get_session() as session:
        user = _get_or_404(session, actor.id)
        if not user.check_password(current_password):
            raise ValidationError("Current password is incorrect")

        user.set_password(new_password)
        session.execute(
            delete(UserToken).where(
                UserToken.user_id == user.id,
                ~(
                    (UserToken.kind == TokenKind.ACCESS.value)
                    & (UserToken.token_hash == hash_token(actor.token))
                ),
            )
        )
        logger.info(f"User {user.id} changed password; other sessions revoked")


def update_notification_preferences(
    actor: CurrentUser, preferences: dict[str, bool | None]
) -> dict[str, bool]:
    with get_session() as session:
        user = _get_or_404(session, actor.id)
        _merge_preferences(user, preferences)
        return user.preferences()
