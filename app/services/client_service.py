"""
Client directory — Service Layer.

Clients and their sites. No state machine here; sites are created with the
client or added afterwards, and are never moved between clients.
"""

import logging

from app.models import db
from app.models.client import Client, Site
from app.services.helpers.unit_of_work import atomic, get_or_raise
from app.utils.helpers import PayloadErrors, optional_email, optional_float, optional_str, require_str

logger = logging.getLogger(__name__)

_CLIENT_TEXT_FIELDS = ("contact_name", "contact_phone", "billing_address", "notes")
_SITE_TEXT_FIELDS = ("address_line2", "access_notes", "contact_name", "contact_phone")


def _parse_site(data: dict, errors: PayloadErrors, prefix: str = "") -> dict:
    scoped = PayloadErrors()
    site = {
        "label": require_str(data, "label", scoped, min_length=2),
        "address_line1": require_str(data, "address_line1", scoped, min_length=3),
        "postal_code": require_str(data, "postal_code", scoped, min_length=4),
        "city": require_str(data, "city", scoped, min_length=2),
        "country": optional_str(data, "country", scoped) or "France",
        "latitude": optional_float(data, "latitude", scoped),
        "longitude": optional_float(data, "longitude", scoped),
        "contact_email": optional_email(data, "contact_email", scoped),
    }
    for name in _SITE_TEXT_FIELDS:
        site[name] = optional_str(data, name, scoped)
    for field, message in scoped.details.items():
        errors.add(f"{prefix}{field}", message)
    return site


def create_client(data: dict) -> Client:
    """Create a client, optionally with its sites.

    Body: { name (min 2), contact_name?, contact_email?, contact_phone?,
            billing_address?, notes?, sites?: [ {label, address_line1,
            postal_code, city, ...} ] }
    """
    errors = PayloadErrors()
    name = require_str(data, "name", errors, min_length=2)
    contact_email = optional_email(data, "contact_email", errors)
    text = {field: optional_str(data, field, errors) for field in _CLIENT_TEXT_FIELDS}

    raw_sites = data.get("sites") or []
    if not isinstance(raw_sites, list):
        errors.add("sites", "must be a list")
        raw_sites = []
    sites = []
    for index, raw in enumerate(raw_sites):
        if not isinstance(raw, dict):
            errors.add(f"sites[{index}]", "must be an object")
            continue
        sites.append(_parse_site(raw, errors, prefix=f"sites[{index}]."))
    errors.raise_if_any()

    with atomic("client.create"):
        client = Client(name=name, contact_email=contact_email, **text)
        db.session.add(client)
        db.session.flush()
        for site in sites:
            db.session.add(Site(client_id=client.id, **site))

    logger.info("Client %s created with %d site(s)", client.id, len(sites))
    return client


def patch_client(client_id: str, data: dict) -> Client:
    errors = PayloadErrors()
    fields = {}
    if "name" in data:
        fields["name"] = require_str(data, "name", errors, min_length=2)
    if "contact_email" in data:
        fields["contact_email"] = optional_email(data, "contact_email", errors)
    for field in _CLIENT_TEXT_FIELDS:
        if field in data:
            fields[field] = optional_str(data, field, errors)
    errors.raise_if_any()

    with atomic("client.patch"):
        client = get_or_raise(Client, client_id)
        for field, value in fields.items():
            setattr(client, field, value)
    return client


def add_site(client_id: str, data: dict) -> Site:
    errors = PayloadErrors()
    fields = _parse_site(data, errors)
    errors.raise_if_any()

    with atomic("client.add_site"):
        client = get_or_raise(Client, client_id)
        site = Site(client_id=client.id, **fields)
        db.session.add(site)

    logger.info("Site %s added to client %s", site.id, client_id)
    return site


def get_client(client_id: str) -> Client:
    return get_or_raise(Client, client_id)


def list_clients() -> list[Client]:
    return Client.query.order_by(Client.name).all()
