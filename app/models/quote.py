"""
Quote domain model.

A Quote is raised for a Case, handled by the office and sent to the client.
Entering SENT, ACCEPTED or DECLINED closes the quote's pending QUOTE review.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso

# ── Constants ────────────────────────────────────────────────────────────────

QUOTE_STATUSES = ("REQUESTED", "IN_PROGRESS", "SENT", "ACCEPTED", "DECLINED")

QUOTE_TRANSITIONS = {
    "REQUESTED":   ["IN_PROGRESS", "SENT", "DECLINED"],
    "IN_PROGRESS": ["REQUESTED", "SENT", "DECLINED"],
    "SENT":        ["IN_PROGRESS", "ACCEPTED", "DECLINED"],
    "ACCEPTED":    [],
    "DECLINED":    [],
}

# Entering one of these closes the open QUOTE review item.
QUOTE_REVIEW_CLOSING_STATUSES = frozenset({"SENT", "ACCEPTED", "DECLINED"})


def validate_quote_transition(old_status, new_status):
    """Return True if Quote status transition is valid (re-applying is allowed)."""
    return old_status == new_status or new_status in QUOTE_TRANSITIONS.get(old_status, [])


class Quote(db.Model):
    """Price quote for a Case."""

    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("idx_quote_case", "case_id"),
        db.Index("idx_quote_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    case_id = db.Column(
        db.String(36), db.ForeignKey("cases.id", ondelete="RESTRICT"), nullable=False,
    )
    label = db.Column(db.String(255), nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="REQUESTED",
        comment="REQUESTED | IN_PROGRESS | SENT | ACCEPTED | DECLINED",
    )
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default="EUR")
    document_url = db.Column(db.String(500), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    requested_by_id = db.Column(db.String(64), nullable=False)
    handled_by_id = db.Column(db.String(64), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    case = db.relationship("Case", back_populates="quotes")
    quote_requests = db.relationship(
        "QuoteRequest", back_populates="quote", order_by="QuoteRequest.created_at", lazy="select",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "case_id": self.case_id,
            "label": self.label,
            "status": self.status,
            "amount": float(self.amount) if self.amount is not None else None,
            "currency": self.currency,
            "document_url": self.document_url,
            "notes": self.notes,
            "requested_by_id": self.requested_by_id,
            "handled_by_id": self.handled_by_id,
            "sent_at": iso(self.sent_at),
            "accepted_at": iso(self.accepted_at),
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_children:
            result["case"] = self.case.to_dict() if self.case else None
            result["quote_requests"] = [qr.to_dict() for qr in self.quote_requests]
        return result

    def __repr__(self):
        return f"<Quote {self.id}: {self.label or '-'} [{self.status}]>"
