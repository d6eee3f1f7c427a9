"""
Device blueprint.

Endpoints:
    GET   /api/v1/devices                            list (?site_id=, ?status=)
    GET   /api/v1/devices/<id>                       detail
    PATCH /api/v1/devices/<id>                       partial update
    GET   /api/v1/devices/proposals                  pending proposals, oldest first
    GET   /api/v1/devices/proposals/<id>             proposal detail
    POST  /api/v1/devices/proposals/<id>/validate    resolve (ACTIVE | REJECTED | REPLACED)
    POST  /api/v1/devices/proposals/<id>/reject      reject with a note
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, list_response
from app.services import device_service

device_bp = Blueprint("devices", __name__, url_prefix="/api/v1/devices")


@device_bp.route("", methods=["GET"])
def list_devices():
    devices = device_service.list_devices(
        site_id=request.args.get("site_id"),
        status=request.args.get("status"),
    )
    return list_response(devices)


@device_bp.route("/<device_id>", methods=["GET"])
def get_device(device_id):
    return jsonify(device_service.get_device(device_id).to_dict(include_site=True))


@device_bp.route("/<device_id>", methods=["PATCH"])
def update_device(device_id):
    device = device_service.update_device(device_id, json_body())
    return jsonify(device.to_dict())


@device_bp.route("/proposals", methods=["GET"])
def list_pending_proposals():
    return list_response(device_service.list_pending_proposals())


@device_bp.route("/proposals/<proposal_id>", methods=["GET"])
def get_proposal(proposal_id):
    return jsonify(device_service.get_proposal(proposal_id).to_dict(include_children=True))


@device_bp.route("/proposals/<proposal_id>/validate", methods=["POST"])
def validate_proposal(proposal_id):
    proposal = device_service.validate_proposal(proposal_id, json_body())
    return jsonify(proposal.to_dict())


@device_bp.route("/proposals/<proposal_id>/reject", methods=["POST"])
def reject_proposal(proposal_id):
    proposal = device_service.reject_proposal(proposal_id, json_body())
    return jsonify(proposal.to_dict())
