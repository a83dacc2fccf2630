"""Service for shipment records and the received/in-transit/delivered flow."""

from __future__ import annotations

from typing import Any

from sqlalchemy import select

from access_core.auth.service import CurrentUser
from access_core.constants import NotificationType, ShipmentStatus
from access_core.db import get_session
from access_core.errors import DuplicateKeyError, NotFoundError, ValidationError
from access_core.logging_config import get_logger
from access_core.models import Shipment, User, utcnow
from access_core.serializers import serialize_shipment
from access_core.services.notifications_service import send_notification
from access_core.validation import validate_shipment_status

logger = get_logger(__name__)

NON_NULLABLE_FIELDS = {"tracking_number", "carrier", "sender", "recipient_id", "type", "status"}


def _get_or_404(session, shipment_id: int) -> Shipment:
    shipment = session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError("Shipment not found")
    return shipment


def _ensure_recipient(session, recipient_id: int) -> None:
    if session.get(User, recipient_id) is None:
        raise ValidationError("Recipient user not found")


def _ensure_tracking_number_available(
    session, tracking_number: str, exclude_id: int | None = None
) -> None:
    stmt = select(Shipment.id).where(Shipment.tracking_number == tracking_number)
    if exclude_id is not None:
        stmt = stmt.where(Shipment.id != exclude_id)
    if session.execute(stmt).first():
        raise DuplicateKeyError("tracking_number")


def _list(stmt) -> list[dict[str, Any]]:
    with get_session() as session:
        stmt = stmt.order_by(Shipment.received_time.desc(), Shipment.id.desc())
        return [serialize_shipment(s) for s in session.execute(stmt).scalars().all()]


def _mark_delivered(shipment: Shipment, signature_url: str | None) -> None:
    shipment.status = ShipmentStatus.DELIVERED.value
    shipment.delivered_time = utcnow()
    if signature_url:
        shipment.signature_url = signature_url


def _send_delivered_notification(recipient_id: int | None, shipment: dict[str, Any]) -> None:
    send_notification(
        NotificationType.SHIPMENT_DELIVERED.value,
        recipient_id,
        {
            "tracking_number": shipment["tracking_number"],
            "delivered_time": shipment["delivered_time"],
        },
    )


def list_shipments() -> list[dict[str, Any]]:
    return _list(select(Shipment))


def list_shipments_by_recipient(recipient_id: int) -> list[dict[str, Any]]:
    return _list(select(Shipment).where(Shipment.recipient_id == recipient_id))


def list_shipments_by_status(status: str) -> list[dict[str, Any]]:
    validate_shipment_status(status)
    return _list(select(Shipment).where(Shipment.status == status))


def get_shipment(shipment_id: int) -> dict[str, Any]:
    with get_session() as session:
        return serialize_shipment(_get_or_404(session, shipment_id))


def create_shipment(actor: CurrentUser, data: dict[str, Any]) -> dict[str, Any]:
    """Log a received shipment and tell the recipient it is ready for pickup."""
    with get_session() as session:
        _ensure_recipient(session, data["recipient_id"])
        _ensure_tracking_number_available(session, data["tracking_number"])

        shipment = Shipment(created_by_id=actor.id, updated_by_id=actor.id)
        for field_name, value in data.items():
            if field_name == "received_time" and value is None:
                continue
            setattr(shipment, field_name, value)
        session.add(shipment)
        session.flush()
        result = serialize_shipment(shipment)

    logger.info(f"Shipment {result['id']} ({result['tracking_number']}) received by {actor.id}")
    send_notification(
        NotificationType.SHIPMENT_RECEIVED.value,
        result["recipient_id"],
        {"sender": result["sender"], "tracking_number": result["tracking_number"]},
    )
    return result


def update_shipment(actor: CurrentUser, shipment_id: int, data: dict[str, Any]) -> dict[str, Any]:
    """
    Update a shipment. Setting status to delivered here behaves like the
    delivered transition.
    """
    with get_session() as session:
        shipment = _get_or_404(session, shipment_id)
        if data.get("recipient_id") is not None:
            _ensure_recipient(session, data["recipient_id"])
        if data.get("tracking_number") and data["tracking_number"] != shipment.tracking_number:
            _ensure_tracking_number_available(session, data["tracking_number"], shipment.id)

        delivering = (
            data.get("status") == ShipmentStatus.DELIVERED.value
            and shipment.status != ShipmentStatus.DELIVERED.value
        )
        for field_name, value in data.items():
            if value is None and field_name in NON_NULLABLE_FIELDS:
                continue
            if field_name == "status" and delivering:
                continue
            setattr(shipment, field_name, value)
        if delivering:
            _mark_delivered(shipment, data.get("signature_url"))
        shipment.updated_by_id = actor.id
        session.flush()
        result = serialize_shipment(shipment)

    if delivering:
        _send_delivered_notification(result["recipient_id"], result)
    return result


def delete_shipment(shipment_id: int) -> None:
    with get_session() as session:
        session.delete(_get_or_404(session, shipment_id))
        logger.info(f"Deleted shipment {shipment_id}")


def mark_in_transit(actor: CurrentUser, shipment_id: int) -> dict[str, Any]:
    with get_session() as session:
        shipment = _get_or_404(session, shipment_id)
        shipment.status = ShipmentStatus.IN_TRANSIT.value
        shipment.updated_by_id = actor.id
        session.flush()
        logger.info(f"Shipment {shipment_id} in transit")
        return serialize_shipment(shipment)


def mark_delivered(
    actor: CurrentUser, shipment_id: int, signature_url: str | None = None
) -> dict[str, Any]:
    with get_session() as session:
        shipment = _get_or_404(session, shipment_id)
        _mark_delivered(shipment, signature_url)
        shipment.updated_by_id = actor.id
        session.flush()
        result = serialize_shipment(shipment)

    logger.info(f"Shipment {shipment_id} delivered")
    _send_delivered_notification(result["recipient_id"], result)
    return result
