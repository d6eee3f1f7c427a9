"""
Intervention blueprint.

Endpoints:
    GET  /api/v1/interventions                          list (?status=, ?technician_id=)
    GET  /api/v1/interventions/<id>                     detail with logs, media, requests, proposals
    POST /api/v1/interventions/<id>/assign              assign / reassign technician
    POST /api/v1/interventions/<id>/transition          status change
    GET  /api/v1/interventions/<id>/logs                status trail
    POST /api/v1/interventions/<id>/media               attach photo/document
    POST /api/v1/interventions/<id>/quote-requests      request a quote from the field
    POST /api/v1/interventions/<id>/device-proposals    capture a device for validation

Interventions are created under their case: POST /api/v1/cases/<id>/interventions.
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, list_response
from app.services import intervention_service

intervention_bp = Blueprint("interventions", __name__, url_prefix="/api/v1/interventions")


@intervention_bp.route("", methods=["GET"])
def list_interventions():
    interventions = intervention_service.list_interventions(
        status=request.args.get("status"),
        technician_id=request.args.get("technician_id"),
    )
    return list_response(interventions)


@intervention_bp.route("/<intervention_id>", methods=["GET"])
def get_intervention(intervention_id):
    intervention = intervention_service.get_intervention(intervention_id)
    return jsonify(intervention.to_dict(include_children=True))


@intervention_bp.route("/<intervention_id>/assign", methods=["POST"])
def assign_intervention(intervention_id):
    intervention = intervention_service.assign_intervention(intervention_id, json_body())
    return jsonify(intervention.to_dict())


@intervention_bp.route("/<intervention_id>/transition", methods=["POST"])
def transition_intervention(intervention_id):
    intervention = intervention_service.transition_intervention(intervention_id, json_body())
    return jsonify(intervention.to_dict())


@intervention_bp.route("/<intervention_id>/logs", methods=["GET"])
def list_logs(intervention_id):
    return list_response(intervention_service.list_logs(intervention_id))


@intervention_bp.route("/<intervention_id>/media", methods=["POST"])
def add_media(intervention_id):
    media = intervention_service.add_media(intervention_id, json_body())
    return jsonify(media.to_dict()), 201


@intervention_bp.route("/<intervention_id>/quote-requests", methods=["POST"])
def create_quote_request(intervention_id):
    quote_request = intervention_service.create_quote_request(intervention_id, json_body())
    return jsonify(quote_request.to_dict()), 201


@intervention_bp.route("/<intervention_id>/device-proposals", methods=["POST"])
def create_device_proposal(intervention_id):
    proposal = intervention_service.create_device_proposal(intervention_id, json_body())
    return jsonify(proposal.to_dict()), 201
