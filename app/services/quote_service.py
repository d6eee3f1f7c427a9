"""
Quote Workflow — Service Layer.

    create_quote     → Quote REQUESTED + QUOTE review item
    update_quote     → field update; entering SENT / ACCEPTED / DECLINED
                       resolves the quote's open QUOTE review items
    mark_sent        → SENT, sent_at (default now)
    mark_accepted    → ACCEPTED, accepted_at (default now)
    link_request     → QuoteRequest attached to the quote, IN_PROGRESS

Status changes follow QUOTE_TRANSITIONS; re-applying the current status is
accepted.
"""

import logging

from app.core.exceptions import ConflictError
from app.models import db
from app.models.base import _utcnow
from app.models.case import Case
from app.models.intervention import QuoteRequest
from app.models.quote import (
    QUOTE_REVIEW_CLOSING_STATUSES,
    QUOTE_STATUSES,
    Quote,
    validate_quote_transition,
)
from app.services.helpers.transitions import guard_transition
from app.services.helpers.unit_of_work import atomic, check_version, get_or_raise
from app.services.review_queue import (
    ReviewReference,
    create_review_item,
    quote_label,
    resolve_open_items_for,
)
from app.utils.helpers import (
    PayloadErrors,
    optional_choice,
    optional_datetime,
    optional_int,
    optional_number,
    optional_str,
    optional_url,
    require_str,
)

logger = logging.getLogger(__name__)


def _apply_status(quote: Quote, status: str, resolved_by_id=None, notes=None) -> int:
    """Move *quote* to *status*; close its QUOTE review when leaving the office."""
    guard_transition("Quote", quote, status, validate_quote_transition)
    quote.status = status
    if status in QUOTE_REVIEW_CLOSING_STATUSES:
        return resolve_open_items_for(
            ReviewReference.quote(quote.id), queue="QUOTE", notes=notes, resolved_by_id=resolved_by_id,
        )
    return 0


def create_quote(data: dict) -> Quote:
    """Raise a quote for a case.

    Body: { case_id, requested_by_id, label?, amount?, currency?,
            document_url?, notes? }
    """
    errors = PayloadErrors()
    case_id = require_str(data, "case_id", errors)
    requested_by_id = require_str(data, "requested_by_id", errors)
    label = optional_str(data, "label", errors)
    amount = optional_number(data, "amount", errors, minimum=0)
    currency = optional_str(data, "currency", errors, min_length=3)
    document_url = optional_url(data, "document_url", errors)
    notes = optional_str(data, "notes", errors)
    errors.raise_if_any()

    with atomic("quote.create"):
        case = get_or_raise(Case, case_id)
        quote = Quote(
            case_id=case.id,
            requested_by_id=requested_by_id,
            label=label,
            amount=amount,
            currency=(currency or "EUR").upper(),
            document_url=document_url,
            notes=notes,
            status="REQUESTED",
        )
        db.session.add(quote)
        db.session.flush()
        create_review_item("QUOTE", ReviewReference.quote(quote.id), label=quote_label(quote))

    logger.info("Quote %s requested on case %s by %s", quote.id, case_id, requested_by_id)
    return quote


def update_quote(quote_id: str, data: dict) -> Quote:
    """Partial update. Body: any of { status, amount, currency, document_url,
    handled_by_id, notes, label, expected_version }."""
    errors = PayloadErrors()
    fields = {}
    for name in ("label", "notes", "handled_by_id"):
        if name in data:
            fields[name] = optional_str(data, name, errors)
    if "amount" in data:
        fields["amount"] = optional_number(data, "amount", errors, minimum=0)
    if "document_url" in data:
        fields["document_url"] = optional_url(data, "document_url", errors)
    if data.get("currency") is not None:
        currency = optional_str(data, "currency", errors, min_length=3)
        if currency:
            fields["currency"] = currency.upper()
    status = optional_choice(data, "status", QUOTE_STATUSES, errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("quote.update"):
        quote = get_or_raise(Quote, quote_id)
        check_version(quote, expected_version)
        for name, value in fields.items():
            setattr(quote, name, value)
        resolved = 0
        if status:
            resolved = _apply_status(
                quote, status, resolved_by_id=fields.get("handled_by_id"), notes=fields.get("notes"),
            )

    logger.info("Quote %s updated status=%s (review items resolved: %d)", quote.id, quote.status, resolved)
    return quote


def mark_sent(quote_id: str, data: dict | None = None) -> Quote:
    """Body: { sent_at?, handled_by_id?, expected_version? }"""
    data = data or {}
    errors = PayloadErrors()
    sent_at = optional_datetime(data, "sent_at", errors)
    handled_by_id = optional_str(data, "handled_by_id", errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("quote.mark_sent"):
        quote = get_or_raise(Quote, quote_id)
        check_version(quote, expected_version)
        if quote.amount is None:
            logger.warning("Quote %s sent without an amount", quote.id)
        if handled_by_id:
            quote.handled_by_id = handled_by_id
        quote.sent_at = sent_at or _utcnow()
        resolved = _apply_status(quote, "SENT", resolved_by_id=handled_by_id)

    logger.info("Quote %s sent (review items resolved: %d)", quote.id, resolved)
    return quote


def mark_accepted(quote_id: str, data: dict | None = None) -> Quote:
    """Body: { accepted_at?, expected_version? }"""
    data = data or {}
    errors = PayloadErrors()
    accepted_at = optional_datetime(data, "accepted_at", errors)
    expected_version = optional_int(data, "expected_version", errors)
    errors.raise_if_any()

    with atomic("quote.mark_accepted"):
        quote = get_or_raise(Quote, quote_id)
        check_version(quote, expected_version)
        quote.accepted_at = accepted_at or _utcnow()
        resolved = _apply_status(quote, "ACCEPTED")

    logger.info("Quote %s accepted (review items resolved: %d)", quote.id, resolved)
    return quote


def link_request(quote_id: str, request_id: str) -> QuoteRequest:
    """Attach a field quote request to *quote_id*; no review-queue change."""
    with atomic("quote.link_request"):
        quote = get_or_raise(Quote, quote_id)
        request = get_or_raise(QuoteRequest, request_id)
        if request.quote_id and request.quote_id != quote.id:
            raise ConflictError("QuoteRequest", "quote_id", request.quote_id)
        request.quote_id = quote.id
        request.status = "IN_PROGRESS"

    logger.info("Quote request %s linked to quote %s", request_id, quote_id)
    return request


def get_quote(quote_id: str) -> Quote:
    return get_or_raise(Quote, quote_id)


def list_quotes(case_id: str | None = None, status: str | None = None) -> list[Quote]:
    q = Quote.query
    if case_id:
        q = q.filter_by(case_id=case_id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Quote.created_at.desc()).all()
