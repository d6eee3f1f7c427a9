"""
Intervention Workflow — Service Layer.

Manages the intervention lifecycle with:
  - Creation under a Case (ASSIGNED when a technician is given, else
    PENDING_ASSIGNMENT)
  - Assignment / reassignment of a technician
  - Status transitions (INTERVENTION_TRANSITIONS) with side effects:
        ON_SITE         → actual_start stamped
        REPORT_PENDING  → REPORT review item created
        COMPLETED       → actual_end stamped, every open review item for the
                          intervention resolved
  - One InterventionLog row per assign/transition call
  - Field captures: media, quote requests, device proposals

Every action is one ``atomic()`` unit of work: the intervention update, its
log row and any review-queue mutation commit together or not at all.

Usage:
    from app.services.intervention_service import transition_intervention

    intervention = transition_intervention(
        intervention_id,
        {"status": "COMPLETED", "user_id": "U2"},
    )
"""

import logging

from app.core.exceptions import ConflictError, InvalidTransitionError, ValidationError
from app.models import db
from app.models.audit import InterventionLog, find_log_by_idempotency_key, write_intervention_log
from app.models.base import _utcnow
from app.models.case import PRIORITIES, Case
from app.models.client import Site
from app.models.device import Device, DeviceProposal
from app.models.intervention import (
    ASSIGNABLE_STATUSES,
    INTERVENTION_STATUSES,
    INTERVENTION_TYPES,
    MEDIA_TYPES,
    Intervention,
    InterventionMedia,
    QuoteRequest,
    validate_intervention_transition,
)
from app.services.helpers.transitions import guard_transition, transitions_enforced
from app.services.helpers.unit_of_work import atomic, check_version, get_or_raise
from app.services.review_queue import (
    ReviewReference,
    astreinte_label,
    create_review_item,
    device_validation_label,
    quote_request_label,
    report_label,
    resolve_open_items_for,
)
from app.utils.helpers import (
    PayloadErrors,
    optional_datetime,
    optional_float,
    optional_int,
    optional_str,
    optional_url,
    require_choice,
    require_str,
    require_url,
)

logger = logging.getLogger(__name__)

INITIAL_ASSIGNMENT_NOTE = "Assignation initiale"
ASSIGNMENT_NOTE = "Assignation"
COMPLETION_NOTE = "Intervention terminée"


def _check_schedule(start, end, errors: PayloadErrors) -> None:
    if start and end and end < start:
        errors.add("scheduled_end", "must not be before scheduled_start")


def _replayed(intervention_id: str, idempotency_key: str | None) -> Intervention | None:
    """Return the intervention if this call was already applied under *idempotency_key*."""
    existing = find_log_by_idempotency_key(idempotency_key)
    if existing is None:
        return None
    if existing.intervention_id != intervention_id:
        raise ConflictError("InterventionLog", "idempotency_key", idempotency_key)
    logger.info("Replayed call for intervention %s (idempotency_key=%s), nothing written", intervention_id, idempotency_key)
    return db.session.get(Intervention, intervention_id)


# ── Creation ─────────────────────────────────────────────────────────────────


def create_intervention(case_id: str, data: dict) -> Intervention:
    """Create an intervention attached to *case_id*.

    Body: { title, type, priority?, scheduled_start?, scheduled_end?,
            technician_id?, notes?, drive_folder_url? }

    Raises:
        ValidationError, NotFoundError (case), ConflictError (closed case).
    """
    errors = PayloadErrors()
    title = require_str(data, "title", errors, min_length=3)
    itype = require_choice(data, "type", INTERVENTION_TYPES, errors)
    priority = require_choice(data, "priority", PRIORITIES, errors, default="STANDARD")
    scheduled_start = optional_datetime(data, "scheduled_start", errors)
    scheduled_end = optional_datetime(data, "scheduled_end", errors)
    technician_id = optional_str(data, "technician_id", errors)
    notes = optional_str(data, "notes", errors)
    drive_folder_url = optional_str(data, "drive_folder_url", errors)
    _check_schedule(scheduled_start, scheduled_end, errors)
    errors.raise_if_any()

    with atomic("intervention.create"):
        case = get_or_raise(Case, case_id)
        if case.status == "CLOSED" and transitions_enforced():
            raise ConflictError("Case", "status", case.status)

        intervention = Intervention(
            case_id=case.id,
            title=title,
            type=itype,
            priority=priority,
            status="ASSIGNED" if technician_id else "PENDING_ASSIGNMENT",
            technician_id=technician_id,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            notes=notes,
            drive_folder_url=drive_folder_url,
        )
        db.session.add(intervention)
        db.session.flush()

        if technician_id:
            write_intervention_log(
                intervention_id=intervention.id,
                status_from="PENDING_ASSIGNMENT",
                status_to="ASSIGNED",
                actor=technician_id,
                note=INITIAL_ASSIGNMENT_NOTE,
            )

        if itype == "ASTREINTE":
            create_review_item(
                "ASTREINTE",
                ReviewReference.intervention(intervention.id),
                label=astreinte_label(title),
            )

    logger.info(
        "Intervention %s created on case %s status=%s type=%s",
        intervention.id, case_id, intervention.status, itype,
    )
    return intervention


# ── Assignment ───────────────────────────────────────────────────────────────


def assign_intervention(intervention_id: str, data: dict) -> Intervention:
    """Assign (or reassign) a technician.

    Body: { technician_id, assigned_by_id, scheduled_start?, scheduled_end?,
            note?, expected_version?, idempotency_key? }

    Writes exactly one log row (previous status → ASSIGNED, actor =
    assigned_by_id) unless the idempotency key was already used.
    """
    errors = PayloadErrors()
    technician_id = require_str(data, "technician_id", errors)
    assigned_by_id = require_str(data, "assigned_by_id", errors)
    scheduled_start = optional_datetime(data, "scheduled_start", errors)
    scheduled_end = optional_datetime(data, "scheduled_end", errors)
    note = optional_str(data, "note", errors)
    expected_version = optional_int(data, "expected_version", errors)
    idempotency_key = optional_str(data, "idempotency_key", errors)
    _check_schedule(scheduled_start, scheduled_end, errors)
    errors.raise_if_any()

    with atomic("intervention.assign"):
        replay = _replayed(intervention_id, idempotency_key)
        if replay is not None:
            return replay

        intervention = get_or_raise(Intervention, intervention_id)
        check_version(intervention, expected_version)
        if transitions_enforced() and intervention.status not in ASSIGNABLE_STATUSES:
            raise InvalidTransitionError("Intervention", intervention.id, intervention.status, "ASSIGNED")

        previous_status = intervention.status
        intervention.technician_id = technician_id
        intervention.status = "ASSIGNED"
        if scheduled_start is not None:
            intervention.scheduled_start = scheduled_start
        if scheduled_end is not None:
            intervention.scheduled_end = scheduled_end

        write_intervention_log(
            intervention_id=intervention.id,
            status_from=previous_status,
            status_to="ASSIGNED",
            actor=assigned_by_id,
            note=note or ASSIGNMENT_NOTE,
            idempotency_key=idempotency_key,
        )

    logger.info(
        "Intervention %s assigned to %s by %s (%s → ASSIGNED)",
        intervention.id, technician_id, assigned_by_id, previous_status,
    )
    return intervention


# ── Status transitions ───────────────────────────────────────────────────────


def transition_intervention(intervention_id: str, data: dict) -> Intervention:
    """Move an intervention to a new status.

    Body: { status, user_id, note?, timestamp?, expected_version?,
            idempotency_key? }

    Side effects (same transaction):
        ON_SITE         actual_start = timestamp or now
        COMPLETED       actual_end = timestamp or now; open review items resolved
        REPORT_PENDING  REPORT review item created

    The log row records ``status_to`` only.

    Raises:
        ValidationError, NotFoundError, InvalidTransitionError, StaleVersionError
    """
    errors = PayloadErrors()
    new_status = require_choice(data, "status", INTERVENTION_STATUSES, errors)
    user_id = require_str(data, "user_id", errors)
    note = optional_str(data, "note", errors)
    timestamp = optional_datetime(data, "timestamp", errors)
    expected_version = optional_int(data, "expected_version", errors)
    idempotency_key = optional_str(data, "idempotency_key", errors)
    errors.raise_if_any()

    with atomic("intervention.transition"):
        replay = _replayed(intervention_id, idempotency_key)
        if replay is not None:
            return replay

        intervention = get_or_raise(Intervention, intervention_id)
        check_version(intervention, expected_version)
        guard_transition("Intervention", intervention, new_status, validate_intervention_transition)
        if new_status == "ASSIGNED" and not intervention.technician_id:
            raise ValidationError(
                "An intervention cannot be ASSIGNED without a technician",
                details={"technician_id": "required for ASSIGNED"},
            )

        previous_status = intervention.status
        intervention.status = new_status
        at = timestamp or _utcnow()
        overwrite = not transitions_enforced()

        if new_status == "ON_SITE" and (overwrite or intervention.actual_start is None):
            intervention.actual_start = at
        if new_status == "COMPLETED" and (overwrite or intervention.actual_end is None):
            intervention.actual_end = at

        write_intervention_log(
            intervention_id=intervention.id,
            status_to=new_status,
            actor=user_id,
            note=note,
            idempotency_key=idempotency_key,
        )

        if new_status == "REPORT_PENDING":
            create_review_item(
                "REPORT",
                ReviewReference.intervention(intervention.id),
                label=report_label(intervention.title),
            )

        resolved = 0
        if new_status == "COMPLETED":
            resolved = resolve_open_items_for(
                ReviewReference.intervention(intervention.id), notes=COMPLETION_NOTE, resolved_by_id=user_id,
            )

    logger.info(
        "Intervention %s %s → %s by %s (review items resolved: %d)",
        intervention.id, previous_status, new_status, user_id, resolved,
    )
    return intervention


# ── Field captures ───────────────────────────────────────────────────────────


def add_media(intervention_id: str, data: dict) -> InterventionMedia:
    """Attach a photo/document. Body: { url, description?, media_type? }"""
    errors = PayloadErrors()
    url = require_url(data, "url", errors)
    description = optional_str(data, "description", errors)
    media_type = require_choice(data, "media_type", MEDIA_TYPES, errors, default="PHOTO")
    errors.raise_if_any()

    with atomic("intervention.add_media"):
        intervention = get_or_raise(Intervention, intervention_id)
        media = InterventionMedia(
            intervention_id=intervention.id,
            url=url,
            description=description,
            media_type=media_type,
        )
        db.session.add(media)
    return media


def create_quote_request(intervention_id: str, data: dict) -> QuoteRequest:
    """Request a quote from the field; queues a QUOTE review item.

    Body: { description (min 5), template_key? }
    """
    errors = PayloadErrors()
    description = require_str(data, "description", errors, min_length=5)
    template_key = optional_str(data, "template_key", errors)
    errors.raise_if_any()

    with atomic("intervention.quote_request"):
        intervention = get_or_raise(Intervention, intervention_id)
        request = QuoteRequest(
            intervention_id=intervention.id,
            description=description,
            template_key=template_key,
        )
        db.session.add(request)
        db.session.flush()
        create_review_item(
            "QUOTE",
            ReviewReference.quote_request(request.id),
            label=quote_request_label(description),
        )

    logger.info("Quote request %s raised from intervention %s", request.id, intervention_id)
    return request


def create_device_proposal(intervention_id: str, data: dict) -> DeviceProposal:
    """Capture a device on site for office validation.

    Body: { label, brand?, model?, serial_number?, gps_latitude?,
            gps_longitude?, access_location?, notes?, photos_folder_url?,
            site_id?, previous_device_id? }

    ``site_id`` defaults to the site of the intervention's case. A
    ``previous_device_id`` must name a device on the same site. Queues a
    DEVICE_VALIDATION review item referencing the proposal.
    """
    errors = PayloadErrors()
    label = require_str(data, "label", errors, min_length=2)
    brand = optional_str(data, "brand", errors)
    model = optional_str(data, "model", errors)
    serial_number = optional_str(data, "serial_number", errors)
    gps_latitude = optional_float(data, "gps_latitude", errors)
    gps_longitude = optional_float(data, "gps_longitude", errors)
    access_location = optional_str(data, "access_location", errors)
    notes = optional_str(data, "notes", errors)
    photos_folder_url = optional_url(data, "photos_folder_url", errors)
    site_id = optional_str(data, "site_id", errors)
    previous_device_id = optional_str(data, "previous_device_id", errors)
    errors.raise_if_any()

    with atomic("intervention.device_proposal"):
        intervention = get_or_raise(Intervention, intervention_id)
        site = get_or_raise(Site, site_id or intervention.case.site_id)
        if previous_device_id:
            previous = get_or_raise(Device, previous_device_id)
            if previous.site_id != site.id:
                raise ValidationError(
                    "Previous device belongs to another site",
                    details={"previous_device_id": "must be installed on the proposal site"},
                )

        proposal = DeviceProposal(
            site_id=site.id,
            intervention_id=intervention.id,
            previous_device_id=previous_device_id,
            label=label,
            brand=brand,
            model=model,
            serial_number=serial_number,
            gps_latitude=gps_latitude,
            gps_longitude=gps_longitude,
            access_location=access_location,
            notes=notes,
            photos_folder_url=photos_folder_url,
        )
        db.session.add(proposal)
        db.session.flush()
        create_review_item(
            "DEVICE_VALIDATION",
            ReviewReference.device_proposal(proposal.id),
            label=device_validation_label(label),
        )

    logger.info(
        "Device proposal %s captured on site %s from intervention %s (replaces=%s)",
        proposal.id, site.id, intervention_id, previous_device_id or "-",
    )
    return proposal


# ── Reads ────────────────────────────────────────────────────────────────────


def get_intervention(intervention_id: str) -> Intervention:
    return get_or_raise(Intervention, intervention_id)


def list_interventions(status: str | None = None, technician_id: str | None = None) -> list[Intervention]:
    """Interventions, newest first, optionally filtered."""
    q = Intervention.query
    if status:
        q = q.filter_by(status=status)
    if technician_id:
        q = q.filter_by(technician_id=technician_id)
    return q.order_by(Intervention.created_at.desc()).all()


def list_logs(intervention_id: str) -> list[InterventionLog]:
    """Status trail of one intervention, in call order."""
    get_or_raise(Intervention, intervention_id)
    return (
        InterventionLog.query
        .filter_by(intervention_id=intervention_id)
        .order_by(InterventionLog.id)
        .all()
    )
