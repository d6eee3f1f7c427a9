"""
Case Workflow — Service Layer.

Cases are created OPEN against a client site and moved through
CASE_TRANSITIONS by ``patch_case`` or closed by ``close_case``.

Invariant kept here: ``closed_at`` and ``closed_by_id`` are set iff the case
is CLOSED. Closing always queues a REPORT review item for the case; it opens
a new review, it never resolves one.
"""

import logging

from app.core.exceptions import ValidationError
from app.models import db
from app.models.base import _utcnow
from app.models.case import CASE_STATUSES, PRIORITIES, Case, validate_case_transition
from app.models.client import Client, Site
from app.services.helpers.transitions import guard_transition
from app.services.helpers.unit_of_work import atomic, check_version, get_or_raise
from app.services.review_queue import ReviewReference, case_closure_label, create_review_item
from app.utils.helpers import (
    PayloadErrors,
    optional_choice,
    optional_datetime,
    optional_int,
    optional_str,
    optional_url,
    require_choice,
    require_str,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("description", "calendar_event_id")


def _site_for_client(client_id: str, site_id: str) -> tuple[Client, Site]:
    client = get_or_raise(Client, client_id)
    site = get_or_raise(Site, site_id)
    if site.client_id != client.id:
        raise ValidationError(
            "Site does not belong to client",
            details={"site_id": f"site {site_id} is not a site of client {client_id}"},
        )
    return client, site


def create_case(data: dict) -> Case:
    """Open a new case.

    Body: { title (min 3), client_id, site_id, created_by_id, description?,
            priority?, planned_at?, drive_folder_url?, calendar_event_id? }
    """
    errors = PayloadErrors()
    title = require_str(data, "title", errors, min_length=3)
    client_id = require_str(data, "client_id", errors)
    site_id = require_str(data, "site_id", errors)
    created_by_id = require_str(data, "created_by_id", errors)
    priority = require_choice(data, "priority", PRIORITIES, errors, default="STANDARD")
    planned_at = optional_datetime(data, "planned_at", errors)
    text = {name: optional_str(data, name, errors) for name in _TEXT_FIELDS}
    text["drive_folder_url"] = optional_url(data, "drive_folder_url", errors)
    errors.raise_if_any()

    with atomic("case.create"):
        client, site = _site_for_client(client_id, site_id)
        case = Case(
            title=title,
            client_id=client.id,
            site_id=site.id,
            created_by_id=created_by_id,
            priority=priority,
            planned_at=planned_at,
            status="OPEN",
            **text,
        )
        db.session.add(case)

    logger.info("Case %s opened for client %s site %s", case.id, client_id, site_id)
    return case


def patch_case(case_id: str, data: dict) -> Case:
    """Partial update, including status changes.

    Moving into CLOSED requires ``closed_by_id`` (``closed_at`` defaults to
    now); moving out of CLOSED clears both. ``closed_*`` fields are only
    accepted together with a CLOSED status.
    """
    errors = PayloadErrors()
    fields = {}
    if "title" in data:
        fields["title"] = require_str(data, "title", errors, min_length=3)
    if "created_by_id" in data:
        fields["created_by_id"] = require_str(data, "created_by_id", errors)
    for name in _TEXT_FIELDS:
        if name in data:
            fields[name] = optional_str(data, name, errors)
    if "drive_folder_url" in data:
        fields["drive_folder_url"] = optional_url(data, "drive_folder_url", errors)
    if "priority" in data:
        fields["priority"] = require_choice(data, "priority", PRIORITIES, errors)
    if "planned_at" in data:
        fields["planned_at"] = optional_datetime(data, "planned_at", errors)
    client_id = optional_str(data, "client_id", errors)
    site_id = optional_str(data, "site_id", errors)
    status = optional_choice(data, "status", CASE_STATUSES, errors)
    closed_by_id = optional_str(data, "closed_by_id", errors)
    closed_at = optional_datetime(data, "closed_at", errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("case.patch"):
        case = get_or_raise(Case, case_id)
        check_version(case, expected_version)

        target = status or case.status
        if (closed_by_id or closed_at) and target != "CLOSED":
            raise ValidationError(
                "closed_by_id / closed_at require status CLOSED",
                details={"status": "must be CLOSED when closing fields are set"},
            )

        if client_id or site_id:
            client, site = _site_for_client(client_id or case.client_id, site_id or case.site_id)
            case.client_id = client.id
            case.site_id = site.id

        for name, value in fields.items():
            setattr(case, name, value)

        previous_status = case.status
        if status and status != case.status:
            guard_transition("Case", case, status, validate_case_transition)
            case.status = status

        if case.status == "CLOSED":
            if previous_status != "CLOSED" and not closed_by_id:
                raise ValidationError(
                    "closed_by_id is required to close a case",
                    details={"closed_by_id": "required"},
                )
            if closed_by_id:
                case.closed_by_id = closed_by_id
            if closed_at or previous_status != "CLOSED":
                case.closed_at = closed_at or _utcnow()
        else:
            case.closed_by_id = None
            case.closed_at = None

    logger.info("Case %s patched (%s → %s)", case.id, previous_status, case.status)
    return case


def close_case(case_id: str, data: dict) -> Case:
    """Close a case and queue its report review.

    Body: { closed_by_id, note?, expected_version? }
    """
    errors = PayloadErrors()
    closed_by_id = require_str(data, "closed_by_id", errors)
    note = optional_str(data, "note", errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("case.close"):
        case = get_or_raise(Case, case_id)
        check_version(case, expected_version)
        guard_transition("Case", case, "CLOSED", validate_case_transition)

        previous_status = case.status
        case.status = "CLOSED"
        case.closed_at = _utcnow()
        case.closed_by_id = closed_by_id
        create_review_item(
            "REPORT",
            ReviewReference.case(case.id),
            label=case_closure_label(case.title),
            notes=note,
        )

    logger.info("Case %s closed by %s (was %s)", case.id, closed_by_id, previous_status)
    return case


def get_case(case_id: str) -> Case:
    return get_or_raise(Case, case_id)


def list_cases(status: str | None = None, client_id: str | None = None) -> list[Case]:
    """Cases, newest first."""
    q = Case.query
    if status:
        q = q.filter_by(status=status)
    if client_id:
        q = q.filter_by(client_id=client_id)
    return q.order_by(Case.created_at.desc()).all()
