"""
Keys API - physical key inventory and custody (checkout/return).

Create, update and delete are limited to Admin and Security; checkout is
further limited by each key's authorized roles.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from access_core.constants import Roles
from access_core.jwt_middleware import get_current_user, jwt_required, role_required
from access_core.schemas import CheckoutKeyRequest, CreateKeyRequest, UpdateKeyRequest
from access_core.serializers import success_response
from access_core.services import key_service

# Create blueprint without url_prefix (inherited from parent)
keys_bp = Blueprint("keys", __name__)

KEY_MANAGERS = [Roles.ADMIN, Roles.SECURITY]


@keys_bp.get("/keys")
@jwt_required
def get_keys():
    return jsonify(success_response(key_service.list_keys()))


@keys_bp.post("/keys")
@role_required(KEY_MANAGERS)
def post_key():
    payload = request.get_json(silent=True) or {}
    data = CreateKeyRequest(**payload)

    result = key_service.create_key(get_current_user(), data.dict())
    return jsonify(success_response(result)), HTTPStatus.CREATED


@keys_bp.get("/keys/status/<status>")
@jwt_required
def get_keys_by_status(status: str):
    return jsonify(success_response(key_service.list_keys_by_status(status)))


@keys_bp.get("/keys/assigned/<int:user_id>")
@jwt_required
def get_keys_assigned_to(user_id: int):
    return jsonify(success_response(key_service.list_keys_assigned_to(user_id)))


@keys_bp.get("/keys/access-level/<access_level>")
@jwt_required
def get_keys_by_access_level(access_level: str):
    return jsonify(success_response(key_service.list_keys_by_access_level(access_level)))


@keys_bp.get("/keys/overdue")
@role_required(KEY_MANAGERS)
def get_overdue_keys():
    return jsonify(success_response(key_service.list_overdue_keys(get_current_user())))


@keys_bp.post("/keys/overdue/notify")
@role_required(KEY_MANAGERS)
def post_notify_overdue_keys():
    """Alert holders of overdue keys and the security team."""
    sent = key_service.notify_overdue_keys(get_current_user())
    return jsonify(success_response({"notifications_sent": sent}))


@keys_bp.get("/keys/<int:key_id>")
@jwt_required
def get_key(key_id: int):
    return jsonify(success_response(key_service.get_key(key_id)))


@keys_bp.put("/keys/<int:key_id>")
@role_required(KEY_MANAGERS)
def put_key(key_id: int):
    payload = request.get_json(silent=True) or {}
    data = UpdateKeyRequest(**payload)

    result = key_service.update_key(get_current_user(), key_id, data.dict(exclude_unset=True))
    return jsonify(success_response(result))


@keys_bp.delete("/keys/<int:key_id>")
@role_required(KEY_MANAGERS)
def delete_key(key_id: int):
    key_service.delete_key(get_current_user(), key_id)
    return jsonify(success_response(None, "Key deleted"))


@keys_bp.post("/keys/<int:key_id>/checkout")
@jwt_required
def post_checkout(key_id: int):
    """
    Check a key out.

    Body (optional):
        {"assigned_to": int, "expected_return_time": datetime, "notes": str}
    """
    payload = request.get_json(silent=True) or {}
    data = CheckoutKeyRequest(**payload)

    result = key_service.checkout_key(get_current_user(), key_id, data.dict())
    return jsonify(success_response(result))


@keys_bp.post("/keys/<int:key_id>/return")
@jwt_required
def post_return(key_id: int):
    return jsonify(success_response(key_service.return_key(get_current_user(), key_id)))
