"""
Review queue blueprint.

Endpoints:
    GET  /api/v1/reviews                  all items, oldest first (?open=true for unresolved only)
    GET  /api/v1/reviews/summary          open count per queue
    POST /api/v1/reviews/<id>/resolve     resolve one item
"""

from flask import Blueprint, jsonify, request

from app.blueprints import json_body, list_response
from app.services import review_queue

review_bp = Blueprint("reviews", __name__, url_prefix="/api/v1/reviews")


@review_bp.route("", methods=["GET"])
def list_review_items():
    open_only = request.args.get("open", "").lower() in ("1", "true", "yes")
    return list_response(review_queue.list_review_items(include_resolved=not open_only))


@review_bp.route("/summary", methods=["GET"])
def summary():
    return jsonify(review_queue.summarize_open_items())


@review_bp.route("/<item_id>/resolve", methods=["POST"])
def resolve_review_item(item_id):
    item = review_queue.resolve_review_item(item_id, json_body())
    return jsonify(item.to_dict())
