"""
Device domain models.

Models:
    - DeviceProposal: equipment captured by a technician during an
      intervention, waiting for office validation.
    - Device: authoritative equipment record installed on a site.

A proposal is resolved exactly once (ACTIVE | REJECTED | REPLACED). Validating
a proposal as ACTIVE creates a Device and, when the proposal names a
predecessor, moves that predecessor to REPLACED.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso

# ── Constants ────────────────────────────────────────────────────────────────

DEVICE_STATUSES = ("PENDING_VALIDATION", "ACTIVE", "RETIRED", "REPLACED")

PROPOSAL_STATUSES = ("PENDING_VALIDATION", "ACTIVE", "REJECTED", "REPLACED")

# Outcomes accepted by the validate action.
PROPOSAL_OUTCOMES = ("ACTIVE", "REJECTED", "REPLACED")

PROPOSAL_TERMINAL_STATUSES = frozenset({"ACTIVE", "REJECTED", "REPLACED"})

# Devices that can no longer be superseded by a successor.
DEVICE_RETIRED_STATUSES = frozenset({"RETIRED", "REPLACED"})

# Attributes copied from a validated proposal onto the new Device.
CAPTURED_DEVICE_FIELDS = (
    "label", "brand", "model", "serial_number",
    "gps_latitude", "gps_longitude", "access_location", "notes",
)


class Device(db.Model):
    """Installed equipment on a client site."""

    __tablename__ = "devices"
    __table_args__ = (
        db.Index("idx_device_site", "site_id"),
        db.Index("idx_device_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    site_id = db.Column(
        db.String(36), db.ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False,
    )
    label = db.Column(db.String(200), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    model = db.Column(db.String(120), nullable=True)
    serial_number = db.Column(db.String(120), nullable=True)
    status = db.Column(
        db.String(30), nullable=False, default="PENDING_VALIDATION",
        comment="PENDING_VALIDATION | ACTIVE | RETIRED | REPLACED",
    )
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    access_location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    installed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    retired_at = db.Column(db.DateTime(timezone=True), nullable=True)
    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    site = db.relationship("Site", back_populates="devices")

    def to_dict(self, include_site=False):
        result = {
            "id": self.id,
            "site_id": self.site_id,
            "label": self.label,
            "brand": self.brand,
            "model": self.model,
            "serial_number": self.serial_number,
            "status": self.status,
            "gps_latitude": self.gps_latitude,
            "gps_longitude": self.gps_longitude,
            "access_location": self.access_location,
            "notes": self.notes,
            "installed_at": iso(self.installed_at),
            "retired_at": iso(self.retired_at),
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_site:
            result["site"] = self.site.to_dict() if self.site else None
        return result

    def __repr__(self):
        return f"<Device {self.id}: {self.label} [{self.status}]>"


class DeviceProposal(db.Model):
    """Technician-submitted candidate Device awaiting office validation."""

    __tablename__ = "device_proposals"
    __table_args__ = (
        db.Index("idx_proposal_status", "status"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    site_id = db.Column(
        db.String(36), db.ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False,
    )
    intervention_id = db.Column(
        db.String(36), db.ForeignKey("interventions.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    previous_device_id = db.Column(
        db.String(36), db.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True,
    )
    created_device_id = db.Column(
        db.String(36), db.ForeignKey("devices.id", ondelete="SET NULL"), nullable=True,
        comment="Device created when the proposal was validated as ACTIVE",
    )

    # Captured device attributes
    label = db.Column(db.String(200), nullable=False)
    brand = db.Column(db.String(120), nullable=True)
    model = db.Column(db.String(120), nullable=True)
    serial_number = db.Column(db.String(120), nullable=True)
    gps_latitude = db.Column(db.Float, nullable=True)
    gps_longitude = db.Column(db.Float, nullable=True)
    access_location = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    photos_folder_url = db.Column(db.String(500), nullable=True)

    # Resolution
    status = db.Column(
        db.String(30), nullable=False, default="PENDING_VALIDATION",
        comment="PENDING_VALIDATION | ACTIVE | REJECTED | REPLACED",
    )
    validated_by_id = db.Column(db.String(64), nullable=True)
    validated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    validation_notes = db.Column(db.Text, nullable=True)
    rejection_note = db.Column(db.Text, nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}

    site = db.relationship("Site")
    intervention = db.relationship("Intervention", back_populates="device_proposals")
    previous_device = db.relationship("Device", foreign_keys=[previous_device_id])
    created_device = db.relationship("Device", foreign_keys=[created_device_id])

    @property
    def is_resolved(self) -> bool:
        return self.status in PROPOSAL_TERMINAL_STATUSES

    def captured_attributes(self) -> dict:
        """Device attributes captured in the field, keyed by Device column."""
        return {field: getattr(self, field) for field in CAPTURED_DEVICE_FIELDS}

    def to_dict(self, include_children=False):
        result = {
            "id": self.id,
            "site_id": self.site_id,
            "intervention_id": self.intervention_id,
            "previous_device_id": self.previous_device_id,
            "created_device_id": self.created_device_id,
            "label": self.label,
            "brand": self.brand,
            "model": self.model,
            "serial_number": self.serial_number,
            "gps_latitude": self.gps_latitude,
            "gps_longitude": self.gps_longitude,
            "access_location": self.access_location,
            "notes": self.notes,
            "photos_folder_url": self.photos_folder_url,
            "status": self.status,
            "validated_by_id": self.validated_by_id,
            "validated_at": iso(self.validated_at),
            "validation_notes": self.validation_notes,
            "rejection_note": self.rejection_note,
            "rejected_at": iso(self.rejected_at),
            "version": self.version,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_children:
            result["site"] = self.site.to_dict() if self.site else None
            result["intervention"] = self.intervention.to_dict() if self.intervention else None
        return result

    def __repr__(self):
        return f"<DeviceProposal {self.id}: {self.label} [{self.status}]>"
