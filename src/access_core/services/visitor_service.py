"""Service for visitor records and the check-in/check-out flow."""

from __future__ import annotations

from typing import Any

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy import select

from access_core.auth.service import CurrentUser
from access_core.constants import NotificationType, VisitorStatus
from access_core.db import get_session
from access_core.errors import AppError, NotFoundError, ValidationError
from access_core.logging_config import get_logger
from access_core.models import User, Visitor, utcnow
from access_core.serializers import serialize_visitor
from access_core.services.ai_analysis_service import ai_analysis_service
from access_core.services.notifications_service import send_notification

logger = get_logger(__name__)


def _get_or_404(session, visitor_id: int) -> Visitor:
    visitor = session.get(Visitor, visitor_id)
    if visitor is None:
        raise NotFoundError("Visitor not found")
    return visitor


def _ensure_host(session, host_id: int) -> None:
    if session.get(User, host_id) is None:
        raise ValidationError("Host user not found")


def _notification_data(visitor: Visitor) -> dict[str, Any]:
    return {
        "visitor_name": visitor.name,
        "company": visitor.company,
        "purpose": visitor.purpose,
        "visit_date": visitor.visit_date,
        "check_in_time": visitor.check_in_time,
        "check_out_time": visitor.check_out_time,
    }


def list_visitors() -> list[dict[str, Any]]:
    with get_session() as session:
        visitors = (
            session.execute(select(Visitor).order_by(Visitor.visit_date.desc(), Visitor.id.desc()))
            .scalars()
            .all()
        )
        return [serialize_visitor(visitor) for visitor in visitors]


def get_visitor(visitor_id: int) -> dict[str, Any]:
    with get_session() as session:
        return serialize_visitor(_get_or_404(session, visitor_id))


def create_visitor(actor: CurrentUser, data: dict[str, Any]) -> dict[str, Any]:
    """
    Register a visitor. Notes are screened for sentiment before saving; a
    failed screening never blocks creation.
    """
    ai_analysis = ai_analysis_service.screen_notes(data.get("notes"))

    with get_session() as session:
        _ensure_host(session, data["host_id"])

        visitor = Visitor()
        for field_name, value in data.items():
            if field_name == "status" and value is None:
                continue
            setattr(visitor, field_name, value)
        visitor.ai_analysis = ai_analysis
        session.add(visitor)
        session.flush()

        result = serialize_visitor(visitor)
        notify = (visitor.host_id, _notification_data(visitor))

    if ai_analysis["security_concerns"]:
        logger.warning(
            f"Visitor {result['id']} flagged: {ai_analysis['security_concerns']}",
            extra={"visitor_id": result["id"]},
        )
    logger.info(f"Visitor {result['id']} registered by {actor.id}")

    if result["status"] == VisitorStatus.PRE_REGISTERED.value:
        send_notification(NotificationType.VISITOR_APPROVAL_REQUEST.value, *notify)
    return result


def update_visitor(visitor_id: int, data: dict[str, Any]) -> dict[str, Any]:
    with get_session() as session:
        visitor = _get_or_404(session, visitor_id)
        if data.get("host_id") is not None:
            _ensure_host(session, data["host_id"])

        for field_name, value in data.items():
            if value is None and field_name in {"name", "purpose", "visit_date", "status"}:
                continue
            setattr(visitor, field_name, value)
        session.flush()
        return serialize_visitor(visitor)


def delete_visitor(visitor_id: int) -> None:
    with get_session() as session:
        session.delete(_get_or_404(session, visitor_id))
        logger.info(f"Deleted visitor {visitor_id}")


def check_in_visitor(visitor_id: int) -> dict[str, Any]:
    """Mark a visitor as checked in. Repeated calls reset the check-in time."""
    with get_session() as session:
        visitor = _get_or_404(session, visitor_id)
        visitor.status = VisitorStatus.CHECKED_IN.value
        visitor.check_in_time = utcnow()
        session.flush()
        result = serialize_visitor(visitor)
        notify = (visitor.host_id, _notification_data(visitor))

    logger.info(f"Visitor {visitor_id} checked in")
    send_notification(NotificationType.VISITOR_ARRIVAL.value, *notify)
    return result


def check_out_visitor(visitor_id: int) -> dict[str, Any]:
    """Mark a visitor as checked out. Repeated calls reset the check-out time."""
    with get_session() as session:
        visitor = _get_or_404(session, visitor_id)
        visitor.status = VisitorStatus.CHECKED_OUT.value
        visitor.check_out_time = utcnow()
        session.flush()
        result = serialize_visitor(visitor)
        notify = (visitor.host_id, _notification_data(visitor))

    logger.info(f"Visitor {visitor_id} checked out")
    send_notification(NotificationType.VISITOR_CHECKOUT.value, *notify)
    return result


def analyze_photo(image_bytes: bytes) -> dict[str, Any]:
    try:
        return ai_analysis_service.detect_faces(image_bytes)
    except (BotoCoreError, ClientError) as exc:
        logger.error(f"Face detection failed: {exc}")
        raise AppError("Error analyzing photo") from exc


def check_watchlist(image_bytes: bytes) -> dict[str, Any]:
    return ai_analysis_service.check_watchlist(image_bytes)
