"""
Review queue model.

Models:
    - ReviewItem: one pending human approval in a named queue.

A ReviewItem points at the entity that raised it through a tagged weak
reference (``reference_type``, ``reference_id``). There is no foreign key
and no cascade: the referenced row may disappear and the item stays
readable.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso

# ── Constants ────────────────────────────────────────────────────────────────

REVIEW_QUEUES = ("REPORT", "DEVICE_VALIDATION", "ASTREINTE", "QUOTE")

REFERENCE_TYPES = ("case", "intervention", "device_proposal", "quote", "quote_request")


class ReviewItem(db.Model):
    """
    Append/resolve ledger entry.

    Open while ``resolved_at`` is NULL. Several open items may exist for the
    same reference.
    """

    __tablename__ = "review_items"
    __table_args__ = (
        db.Index("idx_review_reference", "reference_id", "resolved_at"),
        db.Index("idx_review_queue", "queue"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    seq = db.Column(
        db.Integer, nullable=False, index=True,
        comment="Insertion sequence; tie-breaker for items created in the same tick",
    )
    queue = db.Column(
        db.String(30), nullable=False,
        comment="REPORT | DEVICE_VALIDATION | ASTREINTE | QUOTE",
    )
    label = db.Column(db.String(255), nullable=False)
    reference_type = db.Column(
        db.String(30), nullable=False,
        comment="case | intervention | device_proposal | quote | quote_request",
    )
    reference_id = db.Column(db.String(36), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    resolved_by_id = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "queue": self.queue,
            "label": self.label,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "resolved_at": iso(self.resolved_at),
            "resolved_by_id": self.resolved_by_id,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        state = "open" if self.is_open else "resolved"
        return f"<ReviewItem {self.id}: {self.queue} {self.reference_type}/{self.reference_id} [{state}]>"
