"""
Service for physical keys: CRUD, custody transitions and overdue tracking.

Custody rules live in the key state machine; this module loads the rows,
runs the transition and sends the follow-up notifications once the session
has been committed.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from access_core.auth.service import CurrentUser
from access_core.constants import ALERT_ACCESS_LEVELS, KeyStatus, NotificationType, Roles
from access_core.db import get_session
from access_core.errors import AuthorizationError, DuplicateKeyError, NotFoundError, ValidationError
from access_core.logging_config import get_logger
from access_core.models import Key, User, utcnow
from access_core.serializers import serialize_key
from access_core.services.key_state_machine import KeyEvent, TransitionContext, key_state_machine
from access_core.services.notifications_service import notify_security_team, send_notification
from access_core.validation import validate_access_level, validate_key_status

logger = get_logger(__name__)

NON_NULLABLE_FIELDS = {"key_name", "key_number", "area", "access_level"}


def _require_key_manager(actor: CurrentUser) -> None:
    if not Roles.can_manage_keys(actor.role):
        logger.warning(f"User {actor.id} ({actor.role}) attempted a key management action")
        raise AuthorizationError("Permission denied")


def _get_or_404(session, key_id: int) -> Key:
    key = session.get(Key, key_id)
    if key is None:
        raise NotFoundError("Key not found")
    return key


def _ensure_key_number_available(session, key_number: str, exclude_id: int | None = None) -> None:
    stmt = select(Key.id).where(Key.key_number == key_number)
    if exclude_id is not None:
        stmt = stmt.where(Key.id != exclude_id)
    if session.execute(stmt).first():
        raise DuplicateKeyError("key_number")


def _list(stmt, *order_by) -> list[dict[str, Any]]:
    with get_session() as session:
        stmt = stmt.order_by(*(order_by or (Key.key_name.asc(),)), Key.id.asc())
        return [serialize_key(key) for key in session.execute(stmt).scalars().all()]


def _notification_data(key: Key) -> dict[str, Any]:
    return {
        "key_name": key.key_name,
        "key_number": key.key_number,
        "assigned_to_name": key.assigned_to.name if key.assigned_to else None,
        "checkout_time": key.checkout_time,
        "return_time": key.return_time,
        "expected_return_time": key.expected_return_time,
    }


def _overdue_query():
    return select(Key).where(
        Key.status == KeyStatus.CHECKED_OUT.value,
        Key.expected_return_time.is_not(None),
        Key.expected_return_time < utcnow(),
    )


def list_keys() -> list[dict[str, Any]]:
    return _list(select(Key))


def list_keys_by_status(status: str) -> list[dict[str, Any]]:
    validate_key_status(status)
    return _list(select(Key).where(Key.status == status))


def list_keys_assigned_to(user_id: int) -> list[dict[str, Any]]:
    return _list(select(Key).where(Key.assigned_to_id == user_id), Key.checkout_time.desc())


def list_keys_by_access_level(access_level: str) -> list[dict[str, Any]]:
    validate_access_level(access_level)
    return _list(select(Key).where(Key.access_level == access_level))


def get_key(key_id: int) -> dict[str, Any]:
    with get_session() as session:
        return serialize_key(_get_or_404(session, key_id))


def create_key(actor: CurrentUser, data: dict[str, Any]) -> dict[str, Any]:
    _require_key_manager(actor)
    with get_session() as session:
        _ensure_key_number_available(session, data["key_number"])

        key = Key(
            status=KeyStatus.AVAILABLE.value,
            created_by_id=actor.id,
            updated_by_id=actor.id,
        )
        for field_name, value in data.items():
            setattr(key, field_name, value)
        session.add(key)
        session.flush()

        logger.info(f"Key {key.key_number} created by {actor.id}")
        return serialize_key(key)


def update_key(actor: CurrentUser, key_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """Update descriptive fields. Custody fields only move through checkout and return."""
    _require_key_manager(actor)
    with get_session() as session:
        key = _get_or_404(session, key_id)
        if data.get("key_number") and data["key_number"] != key.key_number:
            _ensure_key_number_available(session, data["key_number"], key.id)

        for field_name, value in data.items():
            if value is None and field_name in NON_NULLABLE_FIELDS:
                continue
            setattr(key, field_name, value)
        key.updated_by_id = actor.id
        session.flush()
        return serialize_key(key)


def delete_key(actor: CurrentUser, key_id: int) -> None:
    _require_key_manager(actor)
    with get_session() as session:
        key = _get_or_404(session, key_id)
        if key.is_checked_out:
            raise ValidationError("Cannot delete a checked-out key")
        session.delete(key)
        logger.info(f"Deleted key {key_id}")


def checkout_key(actor: CurrentUser, key_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """
    Check a key out to the caller, or to ``assigned_to`` when an Admin or
    Security user hands it to someone else.

    High and Critical keys alert the whole security team.
    """
    with get_session() as session:
        key = _get_or_404(session, key_id)
        assignee_id = data.get("assigned_to") or actor.id
        assignee = session.get(User, assignee_id)

        key_state_machine.apply_transition(
            TransitionContext(
                key=key,
                event=KeyEvent.CHECKOUT,
                actor=actor,
                assignee=assignee,
                expected_return_time=data.get("expected_return_time"),
                notes=data.get("notes"),
            )
        )
        session.flush()
        result = serialize_key(key)
        alert = key.access_level in ALERT_ACCESS_LEVELS
        notify_data = _notification_data(key)

    logger.info(f"Key {result['key_number']} checked out to {assignee_id} by {actor.id}")
    if alert:
        notify_security_team(NotificationType.KEY_CHECKOUT_ALERT.value, notify_data)
    return result


def return_key(actor: CurrentUser, key_id: int) -> dict[str, Any]:
    """Return a checked-out key and let the previous holder know."""
    with get_session() as session:
        key = _get_or_404(session, key_id)
        previous_assignee_id = key.assigned_to_id

        key_state_machine.apply_transition(
            TransitionContext(key=key, event=KeyEvent.RETURN, actor=actor)
        )
        session.flush()
        result = serialize_key(key)
        notify_data = _notification_data(key)

    logger.info(f"Key {result['key_number']} returned by {actor.id}")
    send_notification(NotificationType.KEY_RETURNED.value, previous_assignee_id, notify_data)
    return result


def list_overdue_keys(actor: CurrentUser) -> list[dict[str, Any]]:
    """Checked-out keys whose expected return time has passed."""
    _require_key_manager(actor)
    return _list(_overdue_query(), Key.expected_return_time.asc())


def notify_overdue_keys(actor: CurrentUser) -> int:
    """
    Send ``key_overdue`` to each overdue key's holder and to the security team.

    Returns the number of notifications actually dispatched.
    """
    _require_key_manager(actor)
    with get_session() as session:
        keys = session.execute(_overdue_query()).scalars().all()
        overdue = [(key.assigned_to_id, _notification_data(key)) for key in keys]

    sent = 0
    for assignee_id, notify_data in overdue:
        if send_notification(NotificationType.KEY_OVERDUE.value, assignee_id, notify_data):
            sent += 1
        sent += len(notify_security_team(NotificationType.KEY_OVERDUE.value, notify_data))

    logger.info(f"Overdue key notifications sent: {sent}", extra={"overdue_keys": len(overdue)})
    return sent
