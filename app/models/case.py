"""
Case domain model.

A Case is the customer service ticket: it groups the interventions and quotes
raised for one client site. ``closed_at`` / ``closed_by_id`` are set iff the
case is CLOSED; the case service keeps that invariant.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso

# ── Constants ────────────────────────────────────────────────────────────────

CASE_STATUSES = (
    "OPEN", "IN_PROGRESS", "WAITING_CLIENT", "WAITING_PARTS",
    "REPORT_PENDING", "COMPLETED", "CLOSED",
)

PRIORITIES = ("STANDARD", "URGENT")

CASE_TRANSITIONS = {
    "OPEN":           ["IN_PROGRESS", "WAITING_CLIENT", "WAITING_PARTS",
                       "REPORT_PENDING", "COMPLETED", "CLOSED"],
    "IN_PROGRESS":    ["OPEN", "WAITING_CLIENT", "WAITING_PARTS",
                       "REPORT_PENDING", "COMPLETED", "CLOSED"],
    "WAITING_CLIENT": ["IN_PROGRESS", "WAITING_PARTS", "CLOSED"],
    "WAITING_PARTS":  ["IN_PROGRESS", "WAITING_CLIENT", "CLOSED"],
    "REPORT_PENDING": ["IN_PROGRESS", "COMPLETED", "CLOSED"],
    "COMPLETED":      ["IN_PROGRESS", "CLOSED"],
    "CLOSED":         ["OPEN"],   # re-open
}


def validate_case_transition(old_status, new_status):
    """Return True if Case status transition is valid."""
    return new_status in CASE_TRANSITIONS.get(old_status, [])


class Case(db.Model):
    """Customer service ticket ("dossier")."""

    __tablename__ = "cases"
    __table_args__ = (
        db.Index("idx_case_status", "status"),
        db.Index("idx_case_client", "client_id"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.String(30), nullable=False, default="OPEN",
        comment="OPEN | IN_PROGRESS | WAITING_CLIENT | WAITING_PARTS | REPORT_PENDING | COMPLETED | CLOSED",
    )
    priority = db.Column(db.String(20), nullable=False, default="STANDARD")
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False,
    )
    site_id = db.Column(
        db.String(36), db.ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    drive_folder_url = db.Column(db.String(500), nullable=True)
    calendar_event_id = db.Column(db.String(200), nullable=True)
    planned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by_id = db.Column(db.String(64), nullable=False)
    closed_by_id = db.Column(db.String(64), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    client = db.relationship("Client", back_populates="cases")
    site = db.relationship("Site")
    interventions = db.relationship(
        "Intervention", back_populates="case", order_by="Intervention.created_at", lazy="select",
    )
    quotes = db.relationship(
        "Quote", back_populates="case", order_by="Quote.created_at", lazy="select",
    )

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "client_id": self.client_id,
            "site_id": self.site_id,
            "drive_folder_url": self.drive_folder_url,
            "calendar_event_id": self.calendar_event_id,
            "planned_at": iso(self.planned_at),
            "created_by_id": self.created_by_id,
            "closed_by_id": self.closed_by_id,
            "closed_at": iso(self.closed_at),
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_children:
            result["client"] = self.client.to_dict(include_sites=False) if self.client else None
            result["site"] = self.site.to_dict() if self.site else None
            result["interventions"] = [i.to_dict() for i in self.interventions]
            result["quotes"] = [q.to_dict() for q in self.quotes]
        return result

    def __repr__(self):
        return f"<Case {self.id}: {self.title} [{self.status}]>"
