"""
Field Service Platform
Blueprint registry and shared request helpers.
"""

from flask import jsonify, request

from app.core.exceptions import ValidationError


def json_body() -> dict:
    """Return the request JSON object ({} when the body is empty)."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def list_response(items, **serialize_kwargs):
    """Serialize a list of models as {"items": [...], "total": n}."""
    return jsonify({
        "items": [item.to_dict(**serialize_kwargs) for item in items],
        "total": len(items),
    })
