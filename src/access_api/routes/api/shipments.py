"""
Shipments API - inbound parcel logging and the received/in-transit/delivered flow.
"""

from http import HTTPStatus

from flask import Blueprint, jsonify, request

from access_core.jwt_middleware import get_current_user, jwt_required
from access_core.schemas import (
    CreateShipmentRequest,
    DeliverShipmentRequest,
    UpdateShipmentRequest,
)
from access_core.serializers import success_response
from access_core.services import shipment_service

# Create blueprint without url_prefix (inherited from parent)
shipments_bp = Blueprint("shipments", __name__)


@shipments_bp.get("/shipments")
@jwt_required
def get_shipments():
    return jsonify(success_response(shipment_service.list_shipments()))


@shipments_bp.post("/shipments")
@jwt_required
def post_shipment():
    payload = request.get_json(silent=True) or {}
    data = CreateShipmentRequest(**payload)

    result = shipment_service.create_shipment(get_current_user(), data.dict())
    return jsonify(success_response(result)), HTTPStatus.CREATED


@shipments_bp.get("/shipments/recipient/<int:recipient_id>")
@jwt_required
def get_shipments_by_recipient(recipient_id: int):
    return jsonify(success_response(shipment_service.list_shipments_by_recipient(recipient_id)))


@shipments_bp.get("/shipments/status/<status>")
@jwt_required
def get_shipments_by_status(status: str):
    return jsonify(success_response(shipment_service.list_shipments_by_status(status)))


@shipments_bp.get("/shipments/<int:shipment_id>")
@jwt_required
def get_shipment(shipment_id: int):
    return jsonify(success_response(shipment_service.get_shipment(shipment_id)))


@shipments_bp.put("/shipments/<int:shipment_id>")
@jwt_required
def put_shipment(shipment_id: int):
    payload = request.get_json(silent=True) or {}
    data = UpdateShipmentRequest(**payload)

    result = shipment_service.update_shipment(
        get_current_user(), shipment_id, data.dict(exclude_unset=True)
    )
    return jsonify(success_response(result))


@shipments_bp.delete("/shipments/<int:shipment_id>")
@jwt_required
def delete_shipment(shipment_id: int):
    shipment_service.delete_shipment(shipment_id)
    return jsonify(success_response(None, "Shipment deleted"))


@shipments_bp.post("/shipments/<int:shipment_id>/in-transit")
@jwt_required
def post_in_transit(shipment_id: int):
    result = shipment_service.mark_in_transit(get_current_user(), shipment_id)
    return jsonify(success_response(result))


@shipments_bp.post("/shipments/<int:shipment_id>/delivered")
@jwt_required
def post_delivered(shipment_id: int):
    """
    Mark a shipment delivered and notify the recipient.

    Body (optional):
        {"signature_url": str}
    """
    payload = request.get_json(silent=True) or {}
    data = DeliverShipmentRequest(**payload)

    result = shipment_service.mark_delivered(get_current_user(), shipment_id, data.signature_url)
    return jsonify(success_response(result))
