"""
Users API - user administration and self-service profile endpoints.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from access_core.jwt_middleware import admin_required, get_current_user, jwt_required
from access_core.schemas import (
    AdminUpdateUserRequest,
    ChangePasswordRequest,
    CreateUserRequest,
    NotificationPreferencesRequest,
    UpdateProfileRequest,
)
from access_core.serializers import success_response
from access_core.services import user_service

# Create blueprint without url_prefix (inherited from parent)
users_bp = Blueprint("users", __name__)


# ==================== SELF SERVICE ====================


@users_bp.get("/users/me/profile")
@jwt_required
def get_my_profile():
    return jsonify(success_response(user_service.get_profile(get_current_user())))


@users_bp.put("/users/me/profile")
@jwt_required
def put_my_profile():
    payload = request.get_json(silent=True) or {}
    data = UpdateProfileRequest(**payload)

    result = user_service.update_profile(get_current_user(), data.dict(exclude_unset=True))
    return jsonify(success_response(result))


@users_bp.put("/users/me/password")
@jwt_required
def put_my_password():
    """Change the caller's password; other sessions are signed out."""
    payload = request.get_json(silent=True) or {}
    data = ChangePasswordRequest(**payload)

    user_service.change_password(get_current_user(), data.current_password, data.new_password)
    return jsonify(success_response(None, "Password updated"))


@users_bp.put("/users/me/notifications")
@jwt_required
def put_my_notifications():
    payload = request.get_json(silent=True) or {}
    data = NotificationPreferencesRequest(**payload)

    preferences = user_service.update_notification_preferences(
        get_current_user(), data.dict(exclude_unset=True)
    )
    return jsonify(success_response(preferences))


# ==================== ADMINISTRATION ====================


@users_bp.get("/users")
@admin_required
def get_users():
    return jsonify(success_response(user_service.list_users()))


@users_bp.post("/users")
@admin_required
def post_user():
    payload = request.get_json(silent=True) or {}
    data = CreateUserRequest(**payload)

    result = user_service.create_user(data.dict())
    return jsonify(success_response(result)), HTTPStatus.CREATED


@users_bp.get("/users/role/<role>")
@admin_required
def get_users_by_role(role: str):
    return jsonify(success_response(user_service.list_users_by_role(role)))


@users_bp.get("/users/department/<department>")
@admin_required
def get_users_by_department(department: str):
    return jsonify(success_response(user_service.list_users_by_department(department)))


@users_bp.get("/users/<int:user_id>")
@jwt_required
def get_user(user_id: int):
    return jsonify(success_response(user_service.get_user(get_current_user(), user_id)))


@users_bp.put("/users/<int:user_id>")
@jwt_required
def put_user(user_id: int):
    """
    Update a user. Role and status are accepted here so that a non-admin who
    sends them gets a 403 rather than a schema error.
    """
    payload = request.get_json(silent=True) or {}
    data = AdminUpdateUserRequest(**payload)

    result = user_service.update_user(get_current_user(), user_id, data.dict(exclude_unset=True))
    return jsonify(success_response(result))


@users_bp.delete("/users/<int:user_id>")
@admin_required
def delete_user(user_id: int):
    user_service.delete_user(user_id)
    return jsonify(success_response(None, "User deleted"))
