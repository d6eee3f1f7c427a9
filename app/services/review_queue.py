"""
Review Queue — append/resolve ledger of pending human approvals.

Four queues: REPORT, DEVICE_VALIDATION, ASTREINTE, QUOTE. Each item points at
the entity that raised it through a ``ReviewReference`` (kind, id).

Writers used inside a workflow transaction (``create_review_item``,
``resolve_open_items_for``) only flush; the calling handler owns the commit.
``resolve_review_item`` is an action in its own right and commits.

Usage:
    from app.services.review_queue import ReviewReference, create_review_item

    create_review_item(
        "REPORT",
        ReviewReference.intervention(intervention.id),
        label=report_label(intervention.title),
    )
"""

import logging
from typing import NamedTuple

from sqlalchemy import func

from app.models import db
from app.models.base import _utcnow
from app.models.review import REFERENCE_TYPES, REVIEW_QUEUES, ReviewItem
from app.services.helpers.unit_of_work import atomic, get_or_raise
from app.utils.helpers import PayloadErrors, optional_str

logger = logging.getLogger(__name__)


class ReviewReference(NamedTuple):
    """Tagged weak reference to the entity a review item concerns."""

    kind: str
    id: str

    @classmethod
    def case(cls, case_id):
        return cls("case", case_id)

    @classmethod
    def intervention(cls, intervention_id):
        return cls("intervention", intervention_id)

    @classmethod
    def device_proposal(cls, proposal_id):
        return cls("device_proposal", proposal_id)

    @classmethod
    def quote(cls, quote_id):
        return cls("quote", quote_id)

    @classmethod
    def quote_request(cls, request_id):
        return cls("quote_request", request_id)


# ── Labels ───────────────────────────────────────────────────────────────────

def report_label(title: str) -> str:
    return f"Compte rendu à valider - {title}"


def case_closure_label(title: str) -> str:
    return f"Clôture du dossier {title}"


def quote_label(quote) -> str:
    return f"Devis à traiter - {quote.label or quote.id}"


def quote_request_label(description: str) -> str:
    return f"Demande de devis - {description[:40]}"


def device_validation_label(label: str) -> str:
    return f"Nouvel appareil à valider - {label}"


def astreinte_label(title: str) -> str:
    return f"Intervention d'astreinte à régulariser - {title}"


# ── Writers (caller owns the transaction) ────────────────────────────────────

def create_review_item(
    queue: str,
    reference: ReviewReference,
    label: str,
    notes: str | None = None,
) -> ReviewItem:
    """Append a new unresolved item. No uniqueness check per reference."""
    if queue not in REVIEW_QUEUES:
        raise ValueError(f"Unknown review queue: {queue}")
    if reference.kind not in REFERENCE_TYPES:
        raise ValueError(f"Unknown review reference kind: {reference.kind}")

    next_seq = (db.session.query(func.max(ReviewItem.seq)).scalar() or 0) + 1
    item = ReviewItem(
        seq=next_seq,
        queue=queue,
        label=label[:255],
        reference_type=reference.kind,
        reference_id=reference.id,
        notes=notes,
    )
    db.session.add(item)
    db.session.flush()
    logger.debug("Review item %s queued on %s for %s/%s", item.id, queue, reference.kind, reference.id)
    return item


def resolve_open_items_for(
    reference: ReviewReference,
    *,
    queue: str | None = None,
    notes: str | None = None,
    resolved_by_id: str | None = None,
) -> int:
    """Resolve every open item pointing at *reference* (and *queue* if given).

    Items are matched on both the reference kind and id.

    Returns the number of items resolved; 0 (not an error) when none match.
    """
    q = ReviewItem.query.filter(
        ReviewItem.reference_type == reference.kind,
        ReviewItem.reference_id == reference.id,
        ReviewItem.resolved_at.is_(None),
    )
    if queue is not None:
        q = q.filter(ReviewItem.queue == queue)

    items = q.all()
    if not items:
        return 0

    now = _utcnow()
    for item in items:
        item.resolved_at = now
        if notes is not None:
            item.notes = notes
        if resolved_by_id is not None:
            item.resolved_by_id = resolved_by_id
    db.session.flush()
    logger.debug("Resolved %d open review item(s) for %s/%s", len(items), reference.kind, reference.id)
    return len(items)


# ── Actions ──────────────────────────────────────────────────────────────────

def resolve_review_item(item_id: str, data: dict | None = None) -> ReviewItem:
    """Explicitly resolve one review item.

    Body: { resolved_by_id?, notes? }. Resolving an item that is already
    resolved returns it unchanged.
    """
    data = data or {}
    errors = PayloadErrors()
    resolved_by_id = optional_str(data, "resolved_by_id", errors)
    notes = optional_str(data, "notes", errors)
    errors.raise_if_any()

    with atomic("review.resolve"):
        item = get_or_raise(ReviewItem, item_id)
        if item.is_open:
            item.resolved_at = _utcnow()
            item.resolved_by_id = resolved_by_id
            if notes is not None:
                item.notes = notes
            logger.info("Review item %s resolved on %s by %s", item.id, item.queue, resolved_by_id or "-")
    return item


# ── Reads ────────────────────────────────────────────────────────────────────

def list_review_items(include_resolved: bool = True) -> list[ReviewItem]:
    """All review items, oldest first."""
    q = ReviewItem.query
    if not include_resolved:
        q = q.filter(ReviewItem.resolved_at.is_(None))
    return q.order_by(ReviewItem.created_at, ReviewItem.seq).all()


def list_open_items_for(reference_id: str, queue: str | None = None) -> list[ReviewItem]:
    q = ReviewItem.query.filter(
        ReviewItem.reference_id == reference_id,
        ReviewItem.resolved_at.is_(None),
    )
    if queue is not None:
        q = q.filter(ReviewItem.queue == queue)
    return q.order_by(ReviewItem.seq).all()


def summarize_open_items() -> dict[str, int]:
    """Open item count per queue (every queue present, zero included)."""
    rows = (
        db.session.query(ReviewItem.queue, func.count(ReviewItem.id))
        .filter(ReviewItem.resolved_at.is_(None))
        .group_by(ReviewItem.queue)
        .all()
    )
    summary = {queue: 0 for queue in REVIEW_QUEUES}
    summary.update({queue: count for queue, count in rows})
    return summary
