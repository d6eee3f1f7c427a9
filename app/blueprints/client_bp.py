"""
Client directory blueprint.

Endpoints:
    GET   /api/v1/clients                   list (name order)
    POST  /api/v1/clients                   create, with optional nested sites
    GET   /api/v1/clients/<id>              detail (sites + devices, cases)
    PATCH /api/v1/clients/<id>              partial update
    POST  /api/v1/clients/<id>/sites        add a site
"""

from flask import Blueprint, jsonify

from app.blueprints import json_body, list_response
from app.services import client_service

client_bp = Blueprint("clients", __name__, url_prefix="/api/v1/clients")


@client_bp.route("", methods=["GET"])
def list_clients():
    return list_response(client_service.list_clients())


@client_bp.route("", methods=["POST"])
def create_client():
    client = client_service.create_client(json_body())
    return jsonify(client.to_dict()), 201


@client_bp.route("/<client_id>", methods=["GET"])
def get_client(client_id):
    client = client_service.get_client(client_id)
    return jsonify(client.to_dict(include_children=True))


@client_bp.route("/<client_id>", methods=["PATCH"])
def patch_client(client_id):
    client = client_service.patch_client(client_id, json_body())
    return jsonify(client.to_dict())


@client_bp.route("/<client_id>/sites", methods=["POST"])
def add_site(client_id):
    site = client_service.add_site(client_id, json_body())
    return jsonify(site.to_dict()), 201
