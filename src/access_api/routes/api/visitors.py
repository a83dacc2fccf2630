"""
Visitors API - visitor registration, check-in/check-out and photo screening.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from access_core.errors import ValidationError
from access_core.jwt_middleware import get_current_user, jwt_required
from access_core.schemas import CreateVisitorRequest, UpdateVisitorRequest
from access_core.serializers import success_response
from access_core.services import visitor_service

# Create blueprint without url_prefix (inherited from parent)
visitors_bp = Blueprint("visitors", __name__)


def _read_uploaded_photo() -> bytes:
    """Return the bytes of the multipart ``photo`` field; images only."""
    photo = request.files.get("photo")
    if photo is None or not photo.filename:
        raise ValidationError("No photo uploaded")
    if not (photo.mimetype or "").startswith("image/"):
        raise ValidationError("Only image files are allowed")
    return photo.read()


@visitors_bp.get("/visitors")
@jwt_required
def get_visitors():
    return jsonify(success_response(visitor_service.list_visitors()))


@visitors_bp.post("/visitors")
@jwt_required
def post_visitor():
    payload = request.get_json(silent=True) or {}
    data = CreateVisitorRequest(**payload)

    result = visitor_service.create_visitor(get_current_user(), data.dict())
    return jsonify(success_response(result)), HTTPStatus.CREATED


@visitors_bp.post("/visitors/analyze-photo")
@jwt_required
def post_analyze_photo():
    """Run face detection on an uploaded photo (multipart field ``photo``, 5MB max)."""
    image_bytes = _read_uploaded_photo()
    return jsonify(success_response(visitor_service.analyze_photo(image_bytes)))


@visitors_bp.post("/visitors/check-watchlist")
@jwt_required
def post_check_watchlist():
    image_bytes = _read_uploaded_photo()
    return jsonify(success_response(visitor_service.check_watchlist(image_bytes)))


@visitors_bp.get("/visitors/<int:visitor_id>")
@jwt_required
def get_visitor(visitor_id: int):
    return jsonify(success_response(visitor_service.get_visitor(visitor_id)))


@visitors_bp.put("/visitors/<int:visitor_id>")
@jwt_required
def put_visitor(visitor_id: int):
    payload = request.get_json(silent=True) or {}
    data = UpdateVisitorRequest(**payload)

    result = visitor_service.update_visitor(visitor_id, data.dict(exclude_unset=True))
    return jsonify(success_response(result))


@visitors_bp.delete("/visitors/<int:visitor_id>")
@jwt_required
def delete_visitor(visitor_id: int):
    visitor_service.delete_visitor(visitor_id)
    return jsonify(success_response(None, "Visitor deleted"))


@visitors_bp.post("/visitors/<int:visitor_id>/check-in")
@jwt_required
def post_check_in(visitor_id: int):
    return jsonify(success_response(visitor_service.check_in_visitor(visitor_id)))


@visitors_bp.post("/visitors/<int:visitor_id>/check-out")
@jwt_required
def post_check_out(visitor_id: int):
    return jsonify(success_response(visitor_service.check_out_visitor(visitor_id)))
