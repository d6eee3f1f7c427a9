"""
Device Proposal Workflow — Service Layer.

A DeviceProposal captured in the field is resolved exactly once:

    validate(outcome=ACTIVE)    → new Device (ACTIVE, installed_at=now);
                                  predecessor, if any, → REPLACED (retired_at=now)
    validate(outcome=REPLACED)  → proposal REPLACED, no device
    validate(outcome=REJECTED)  → proposal REJECTED, no device
    reject(rejection_note)      → proposal REJECTED, rejection_note/rejected_at

Every outcome goes through ``_close_proposal``, which stamps the validator
and resolves the proposal's open review items. Proposal, devices and review
items are written in a single ``atomic()`` block.
"""

import logging

from app.core.exceptions import ConflictError, InvalidTransitionError
from app.models import db
from app.models.base import _utcnow
from app.models.device import (
    DEVICE_RETIRED_STATUSES,
    DEVICE_STATUSES,
    PROPOSAL_OUTCOMES,
    Device,
    DeviceProposal,
)
from app.services.helpers.transitions import transitions_enforced
from app.services.helpers.unit_of_work import atomic, check_version, get_or_raise
from app.services.review_queue import ReviewReference, resolve_open_items_for
from app.utils.helpers import (
    PayloadErrors,
    optional_choice,
    optional_datetime,
    optional_float,
    optional_int,
    optional_str,
    require_choice,
    require_str,
)

logger = logging.getLogger(__name__)


def _ensure_pending(proposal: DeviceProposal, target: str) -> None:
    if transitions_enforced() and proposal.is_resolved:
        raise InvalidTransitionError("DeviceProposal", proposal.id, proposal.status, target)


def _install_device(proposal: DeviceProposal, now) -> Device:
    """Create the Device described by *proposal* and retire its predecessor."""
    if proposal.previous_device_id:
        previous = get_or_raise(Device, proposal.previous_device_id)
        if previous.status in DEVICE_RETIRED_STATUSES and transitions_enforced():
            raise ConflictError("Device", "status", previous.status)
        previous.status = "REPLACED"
        previous.retired_at = now

    device = Device(
        site_id=proposal.site_id,
        status="ACTIVE",
        installed_at=now,
        **proposal.captured_attributes(),
    )
    db.session.add(device)
    db.session.flush()
    proposal.created_device_id = device.id
    return device


def _close_proposal(proposal: DeviceProposal, status: str, validated_by_id: str, now, notes=None) -> int:
    """Terminal resolution shared by validate and reject."""
    proposal.status = status
    proposal.validated_by_id = validated_by_id
    proposal.validated_at = now
    if notes is not None:
        proposal.validation_notes = notes
    return resolve_open_items_for(
        ReviewReference.device_proposal(proposal.id), notes=notes, resolved_by_id=validated_by_id,
    )


# ── Proposal resolution ──────────────────────────────────────────────────────


def validate_proposal(proposal_id: str, data: dict) -> DeviceProposal:
    """Resolve a pending proposal.

    Body: { validated_by_id, outcome? (ACTIVE | REJECTED | REPLACED, default
            ACTIVE), notes?, expected_version? }

    Raises:
        NotFoundError: proposal (or its predecessor device) missing.
        InvalidTransitionError: proposal already resolved.
        ConflictError: predecessor already RETIRED or REPLACED.
    """
    errors = PayloadErrors()
    validated_by_id = require_str(data, "validated_by_id", errors)
    outcome = require_choice(data, "outcome", PROPOSAL_OUTCOMES, errors, default="ACTIVE")
    notes = optional_str(data, "notes", errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    device = None
    with atomic("device_proposal.validate"):
        proposal = get_or_raise(DeviceProposal, proposal_id)
        check_version(proposal, expected_version)
        _ensure_pending(proposal, outcome)

        now = _utcnow()
        if outcome == "ACTIVE":
            device = _install_device(proposal, now)
        resolved = _close_proposal(proposal, outcome, validated_by_id, now, notes=notes)

    logger.info(
        "Device proposal %s validated as %s by %s (device=%s, review items resolved: %d)",
        proposal.id, outcome, validated_by_id, device.id if device else "-", resolved,
    )
    return proposal


def reject_proposal(proposal_id: str, data: dict) -> DeviceProposal:
    """Reject a pending proposal with a mandatory explanation.

    Body: { validated_by_id, rejection_note (min 5), expected_version? }
    """
    errors = PayloadErrors()
    validated_by_id = require_str(data, "validated_by_id", errors)
    rejection_note = require_str(data, "rejection_note", errors, min_length=5)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("device_proposal.reject"):
        proposal = get_or_raise(DeviceProposal, proposal_id)
        check_version(proposal, expected_version)
        _ensure_pending(proposal, "REJECTED")

        now = _utcnow()
        proposal.rejection_note = rejection_note
        proposal.rejected_at = now
        resolved = _close_proposal(proposal, "REJECTED", validated_by_id, now, notes=rejection_note)

    logger.info(
        "Device proposal %s rejected by %s (review items resolved: %d)",
        proposal.id, validated_by_id, resolved,
    )
    return proposal


# ── Devices ──────────────────────────────────────────────────────────────────


def update_device(device_id: str, data: dict) -> Device:
    """Partial update of an installed device.

    A device is only REPLACED by validating a successor proposal; that status
    cannot be set (or left) here while transitions are enforced. An explicit
    ``retired_at`` is kept when retiring; leaving a retired status clears it.
    """
    errors = PayloadErrors()
    fields = {}
    for name in ("brand", "model", "serial_number", "access_location", "notes"):
        if name in data:
            fields[name] = optional_str(data, name, errors)
    if "label" in data:
        fields["label"] = require_str(data, "label", errors, min_length=2)
    for name in ("gps_latitude", "gps_longitude"):
        if name in data:
            fields[name] = optional_float(data, name, errors)
    for name in ("installed_at", "retired_at"):
        if name in data:
            fields[name] = optional_datetime(data, name, errors)
    status = optional_choice(data, "status", DEVICE_STATUSES, errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("device.update"):
        device = get_or_raise(Device, device_id)
        check_version(device, expected_version)
        for name, value in fields.items():
            setattr(device, name, value)

        if status and status != device.status:
            if transitions_enforced() and "REPLACED" in (status, device.status):
                raise InvalidTransitionError("Device", device.id, device.status, status)
            device.status = status
            if status in DEVICE_RETIRED_STATUSES:
                device.retired_at = device.retired_at or _utcnow()
            else:
                device.retired_at = None

    logger.info("Device %s updated fields=%s", device.id, sorted(fields) + (["status"] if status else []))
    return device


# ── Reads ────────────────────────────────────────────────────────────────────


def get_device(device_id: str) -> Device:
    return get_or_raise(Device, device_id)


def list_devices(site_id: str | None = None, status: str | None = None) -> list[Device]:
    q = Device.query
    if site_id:
        q = q.filter_by(site_id=site_id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Device.created_at.desc()).all()


def get_proposal(proposal_id: str) -> DeviceProposal:
    return get_or_raise(DeviceProposal, proposal_id)


def list_pending_proposals() -> list[DeviceProposal]:
    """Proposals awaiting validation, oldest first."""
    return (
        DeviceProposal.query
        .filter_by(status="PENDING_VALIDATION")
        .order_by(DeviceProposal.created_at)
        .all()
    )
