"""
Quote blueprint.

Endpoints:
    GET   /api/v1/quotes                               list (?case_id=, ?status=)
    POST  /api/v1/quotes                               raise a quote
    GET   /api/v1/quotes/<id>                          detail with linked requests
    PATCH /api/v1/quotes/<id>                          partial update / status change
    POST  /api/v1/quotes/<id>/send                     mark SENT
    POST  /api/v1/quotes/<id>/accept                   mark ACCEPTED
    POST  /api/v1/quotes/<id>/requests/<request_id>    link a field quote request
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, list_response
from app.services import quote_service

quote_bp = Blueprint("quotes", __name__, url_prefix="/api/v1/quotes")


@quote_bp.route("", methods=["GET"])
def list_quotes():
    quotes = quote_service.list_quotes(
        case_id=request.args.get("case_id"),
        status=request.args.get("status"),
    )
    return list_response(quotes)


@quote_bp.route("", methods=["POST"])
def create_quote():
    quote = quote_service.create_quote(json_body())
    return jsonify(quote.to_dict()), 201


@quote_bp.route("/<quote_id>", methods=["GET"])
def get_quote(quote_id):
    return jsonify(quote_service.get_quote(quote_id).to_dict(include_children=True))


@quote_bp.route("/<quote_id>", methods=["PATCH"])
def update_quote(quote_id):
    quote = quote_service.update_quote(quote_id, json_body())
    return jsonify(quote.to_dict())


@quote_bp.route("/<quote_id>/send", methods=["POST"])
def mark_sent(quote_id):
    quote = quote_service.mark_sent(quote_id, json_body())
    return jsonify(quote.to_dict())


@quote_bp.route("/<quote_id>/accept", methods=["POST"])
def mark_accepted(quote_id):
    quote = quote_service.mark_accepted(quote_id, json_body())
    return jsonify(quote.to_dict())


@quote_bp.route("/<quote_id>/requests/<request_id>", methods=["POST"])
def link_request(quote_id, request_id):
    quote_request = quote_service.link_request(quote_id, request_id)
    return jsonify(quote_request.to_dict())
