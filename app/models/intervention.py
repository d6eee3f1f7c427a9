"""
Intervention domain models.

Models:
    - Intervention: one scheduled/executed technician visit for a Case.
    - InterventionMedia: photo or document captured during the visit.
    - QuoteRequest: a technician's request for a quote, later linked to a Quote.

The status trail of an intervention lives in ``app.models.audit``.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso

# ── Constants ────────────────────────────────────────────────────────────────

INTERVENTION_STATUSES = (
    "PENDING_ASSIGNMENT", "ASSIGNED", "EN_ROUTE", "ON_SITE",
    "REPORT_PENDING", "COMPLETED", "CANCELLED",
)

INTERVENTION_TYPES = (
    "URGENT", "STANDARD", "ASTREINTE", "INSTALLATION", "MAINTENANCE", "QUOTE_ONLY",
)

INTERVENTION_TRANSITIONS = {
    "PENDING_ASSIGNMENT": ["ASSIGNED", "CANCELLED"],
    "ASSIGNED":           ["PENDING_ASSIGNMENT", "EN_ROUTE", "ON_SITE",
                           "REPORT_PENDING", "COMPLETED", "CANCELLED"],
    "EN_ROUTE":           ["ASSIGNED", "ON_SITE", "CANCELLED"],
    "ON_SITE":            ["EN_ROUTE", "REPORT_PENDING", "COMPLETED", "CANCELLED"],
    "REPORT_PENDING":     ["ON_SITE", "COMPLETED"],
    "COMPLETED":          [],
    "CANCELLED":          [],
}

# States from which (re)assignment to a technician is accepted.
ASSIGNABLE_STATUSES = ("PENDING_ASSIGNMENT", "ASSIGNED", "EN_ROUTE")

MEDIA_TYPES = ("PHOTO", "DOCUMENT")

QUOTE_REQUEST_STATUSES = ("REQUESTED", "IN_PROGRESS", "CLOSED")


def validate_intervention_transition(old_status, new_status):
    """Return True if Intervention status transition is valid."""
    return new_status in INTERVENTION_TRANSITIONS.get(old_status, [])


class Intervention(db.Model):
    """
    A technician visit attached to a Case.

    status = ASSIGNED implies technician_id is set. actual_start is stamped on
    entry into ON_SITE, actual_end on entry into COMPLETED.
    """

    __tablename__ = "interventions"
    __table_args__ = (
        db.Index("idx_intervention_case", "case_id"),
        db.Index("idx_intervention_status", "status"),
        db.Index("idx_intervention_technician", "technician_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    case_id = db.Column(
        db.String(36), db.ForeignKey("cases.id", ondelete="RESTRICT"), nullable=False,
    )
    title = db.Column(db.String(255), nullable=False)
    type = db.Column(
        db.String(20), nullable=False, default="STANDARD",
        comment="URGENT | STANDARD | ASTREINTE | INSTALLATION | MAINTENANCE | QUOTE_ONLY",
    )
    status = db.Column(db.String(30), nullable=False, default="PENDING_ASSIGNMENT")
    priority = db.Column(db.String(20), nullable=False, default="STANDARD")
    technician_id = db.Column(db.String(64), nullable=True)
    scheduled_start = db.Column(db.DateTime(timezone=True), nullable=True)
    scheduled_end = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_start = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_end = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    drive_folder_url = db.Column(db.String(500), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    case = db.relationship("Case", back_populates="interventions")
    logs = db.relationship(
        "InterventionLog", back_populates="intervention",
        order_by="InterventionLog.id", lazy="select",
    )
    media = db.relationship(
        "InterventionMedia", back_populates="intervention",
        order_by="InterventionMedia.created_at", lazy="select",
    )
    quote_requests = db.relationship(
        "QuoteRequest", back_populates="intervention",
        order_by="QuoteRequest.created_at", lazy="select",
    )
    device_proposals = db.relationship(
        "DeviceProposal", back_populates="intervention",
        order_by="DeviceProposal.created_at", lazy="select",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "case_id": self.case_id,
            "title": self.title,
            "type": self.type,
            "status": self.status,
            "priority": self.priority,
            "technician_id": self.technician_id,
            "scheduled_start": iso(self.scheduled_start),
            "scheduled_end": iso(self.scheduled_end),
            "actual_start": iso(self.actual_start),
            "actual_end": iso(self.actual_end),
            "notes": self.notes,
            "drive_folder_url": self.drive_folder_url,
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_children:
            result["case"] = self.case.to_dict() if self.case else None
            result["logs"] = [log.to_dict() for log in self.logs]
            result["media"] = [m.to_dict() for m in self.media]
            result["quote_requests"] = [qr.to_dict() for qr in self.quote_requests]
            result["device_proposals"] = [p.to_dict() for p in self.device_proposals]
        return result

    def __repr__(self):
        return f"<Intervention {self.id}: {self.title} [{self.status}]>"


class InterventionMedia(db.Model):
    """Photo or document attached to an intervention."""

    __tablename__ = "intervention_media"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    intervention_id = db.Column(
        db.String(36), db.ForeignKey("interventions.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    url = db.Column(db.String(1000), nullable=False)
    description = db.Column(db.Text, nullable=True)
    media_type = db.Column(db.String(20), nullable=False, default="PHOTO")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    intervention = db.relationship("Intervention", back_populates="media")

    def to_dict(self):
        return {
            "id": self.id,
            "intervention_id": self.intervention_id,
            "url": self.url,
            "description": self.description,
            "media_type": self.media_type,
            "created_at": iso(self.created_at),
        }


class QuoteRequest(db.Model):
    """Quote requested from the field; linked to at most one Quote."""

    __tablename__ = "quote_requests"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    intervention_id = db.Column(
        db.String(36), db.ForeignKey("interventions.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    quote_id = db.Column(
        db.String(36), db.ForeignKey("quotes.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    description = db.Column(db.Text, nullable=False)
    template_key = db.Column(db.String(100), nullable=True)
    status = db.Column(
        db.String(20), nullable=False, default="REQUESTED",
        comment="REQUESTED | IN_PROGRESS | CLOSED",
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    intervention = db.relationship("Intervention", back_populates="quote_requests")
    quote = db.relationship("Quote", back_populates="quote_requests")

    def to_dict(self):
        return {
            "id": self.id,
            "intervention_id": self.intervention_id,
            "quote_id": self.quote_id,
            "description": self.description,
            "template_key": self.template_key,
            "status": self.status,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
