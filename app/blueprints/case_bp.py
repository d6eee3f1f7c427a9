"""
Case blueprint.

Endpoints:
    GET   /api/v1/cases                       list (?status=, ?client_id=)
    POST  /api/v1/cases                       open a case
    GET   /api/v1/cases/<id>                  detail with client, site, interventions, quotes
    PATCH /api/v1/cases/<id>                  partial update / status change
    POST  /api/v1/cases/<id>/close            close + queue REPORT review
    POST  /api/v1/cases/<id>/interventions    create an intervention under the case
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, list_response
from app.services import case_service, intervention_service

case_bp = Blueprint("cases", __name__, url_prefix="/api/v1/cases")


@case_bp.route("", methods=["GET"])
def list_cases():
    cases = case_service.list_cases(
        status=request.args.get("status"),
        client_id=request.args.get("client_id"),
    )
    return list_response(cases)


@case_bp.route("", methods=["POST"])
def create_case():
    case = case_service.create_case(json_body())
    return jsonify(case.to_dict()), 201


@case_bp.route("/<case_id>", methods=["GET"])
def get_case(case_id):
    return jsonify(case_service.get_case(case_id).to_dict(include_children=True))


@case_bp.route("/<case_id>", methods=["PATCH"])
def patch_case(case_id):
    case = case_service.patch_case(case_id, json_body())
    return jsonify(case.to_dict())


@case_bp.route("/<case_id>/close", methods=["POST"])
def close_case(case_id):
    case = case_service.close_case(case_id, json_body())
    return jsonify(case.to_dict())


@case_bp.route("/<case_id>/interventions", methods=["POST"])
def create_intervention(case_id):
    intervention = intervention_service.create_intervention(case_id, json_body())
    return jsonify(intervention.to_dict()), 201
