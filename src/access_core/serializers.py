"""
Serializers for consistent API responses.

Serialization must happen while the ORM object is still attached to its
session, because related users are lazy-loaded.
"""

from datetime import datetime
from typing import Any

from access_core.models import Key, Shipment, User, Visitor


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def serialize_user_summary(user: User | None, include_email: bool = True) -> dict[str, Any] | None:
    """Compact user reference embedded in visitors, shipments and keys."""
    if user is None:
        return None
    summary: dict[str, Any] = {"id": user.id, "name": user.name}
    if include_email:
        summary["email"] = user.email
        summary["department"] = user.department
    return summary


def serialize_user(user: User) -> dict[str, Any]:
    """Public user representation. Password hash and tokens are never included."""
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "department": user.department,
        "status": user.status,
        "phone": user.phone,
        "profile_picture": user.profile_picture,
        "notification_preferences": user.preferences(),
        "slack_user_id": user.slack_user_id,
        "teams_user_id": user.teams_user_id,
        "email_verified": user.email_verified,
        "created_at": _iso(user.created_at),
        "updated_at": _iso(user.updated_at),
    }


def serialize_visitor(visitor: Visitor) -> dict[str, Any]:
    ai_analysis = visitor.ai_analysis or {}
    return {
        "id": visitor.id,
        "name": visitor.name,
        "company": visitor.company,
        "email": visitor.email,
        "phone": visitor.phone,
        "host_id": visitor.host_id,
        "host": serialize_user_summary(visitor.host),
        "purpose": visitor.purpose,
        "status": visitor.status,
        "visit_date": _iso(visitor.visit_date),
        "check_in_time": _iso(visitor.check_in_time),
        "check_out_time": _iso(visitor.check_out_time),
        "photo_url": visitor.photo_url,
        "id_scan_url": visitor.id_scan_url,
        "notes": visitor.notes,
        "ai_analysis": {
            "sentiment": ai_analysis.get("sentiment"),
            "security_concerns": ai_analysis.get("security_concerns", []),
            "watchlist_match": ai_analysis.get("watchlist_match", False),
        },
        "badge_printed": visitor.badge_printed,
        "created_at": _iso(visitor.created_at),
        "updated_at": _iso(visitor.updated_at),
    }


def serialize_shipment(shipment: Shipment) -> dict[str, Any]:
    return {
        "id": shipment.id,
        "tracking_number": shipment.tracking_number,
        "carrier": shipment.carrier,
        "sender": shipment.sender,
        "recipient_id": shipment.recipient_id,
        "recipient": serialize_user_summary(shipment.recipient),
        "type": shipment.type,
        "status": shipment.status,
        "received_time": _iso(shipment.received_time),
        "delivered_time": _iso(shipment.delivered_time),
        "notes": shipment.notes,
        "handling_instructions": shipment.handling_instructions,
        "weight": shipment.weight,
        "dimensions": shipment.dimensions,
        "photo_url": shipment.photo_url,
        "signature_url": shipment.signature_url,
        "created_by": serialize_user_summary(shipment.created_by, include_email=False),
        "updated_by": serialize_user_summary(shipment.updated_by, include_email=False),
        "created_at": _iso(shipment.created_at),
        "updated_at": _iso(shipment.updated_at),
    }


def serialize_key(key: Key) -> dict[str, Any]:
    return {
        "id": key.id,
        "key_name": key.key_name,
        "key_number": key.key_number,
        "area": key.area,
        "status": key.status,
        "assigned_to_id": key.assigned_to_id,
        "assigned_to": serialize_user_summary(key.assigned_to),
        "checkout_time": _iso(key.checkout_time),
        "return_time": _iso(key.return_time),
        "expected_return_time": _iso(key.expected_return_time),
        "access_level": key.access_level,
        "authorized_roles": list(key.authorized_roles or []),
        "location": key.location,
        "notes": key.notes,
        "created_by": serialize_user_summary(key.created_by, include_email=False),
        "updated_by": serialize_user_summary(key.updated_by, include_email=False),
        "created_at": _iso(key.created_at),
        "updated_at": _iso(key.updated_at),
    }


def success_response(data: Any, message: str | None = None) -> dict[str, Any]:
    """Create a standardized success response."""
    response = {"status": "success", "data": data, "error": None}
    if message:
        response["message"] = message
    return response


def error_response(error: str, details: Any | None = None) -> dict[str, Any]:
    """Create a standardized error response."""
    response = {"status": "error", "data": None, "error": error}
    if details:
        response["details"] = details
    return response
