"""
Client directory models.

Models:
    - Client: a customer company.
    - Site: a physical address belonging to a client, where devices are
      installed and interventions happen.
"""

from app.models import db
from app.models.base import _utcnow, _uuid, iso


class Client(db.Model):
    """A customer. Owns one or more sites and the cases opened for them."""

    __tablename__ = "clients"
    __table_args__ = (
        db.Index("idx_client_name", "name"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    name = db.Column(db.String(200), nullable=False)
    contact_name = db.Column(db.String(150), nullable=True)
    contact_email = db.Column(db.String(200), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    billing_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    sites = db.relationship(
        "Site", back_populates="client", order_by="Site.created_at", lazy="select",
    )
    cases = db.relationship(
        "Case", back_populates="client", order_by="Case.created_at", lazy="select",
    )

    def to_dict(self, include_sites=True, include_children=False):
        result = {
            "id": self.id,
            "name": self.name,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "billing_address": self.billing_address,
            "notes": self.notes,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_sites or include_children:
            result["sites"] = [s.to_dict(include_devices=include_children) for s in self.sites]
        if include_children:
            result["cases"] = [c.to_dict(include_children=True) for c in self.cases]
        return result

    def __repr__(self):
        return f"<Client {self.id}: {self.name}>"


class Site(db.Model):
    """A client location. Devices and cases are attached to a site."""

    __tablename__ = "sites"

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    client_id = db.Column(
        db.String(36), db.ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False, index=True,
    )
    label = db.Column(db.String(200), nullable=False)
    address_line1 = db.Column(db.String(255), nullable=False)
    address_line2 = db.Column(db.String(255), nullable=True)
    postal_code = db.Column(db.String(20), nullable=False)
    city = db.Column(db.String(120), nullable=False)
    country = db.Column(db.String(80), nullable=False, default="France")
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    access_notes = db.Column(db.Text, nullable=True)
    contact_name = db.Column(db.String(150), nullable=True)
    contact_email = db.Column(db.String(200), nullable=True)
    contact_phone = db.Column(db.String(50), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    client = db.relationship("Client", back_populates="sites")
    devices = db.relationship(
        "Device", back_populates="site", order_by="Device.created_at", lazy="select",
    )

    def to_dict(self, include_devices=False):
        result = {
            "id": self.id,
            "client_id": self.client_id,
            "label": self.label,
            "address_line1": self.address_line1,
            "address_line2": self.address_line2,
            "postal_code": self.postal_code,
            "city": self.city,
            "country": self.country,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "access_notes": self.access_notes,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": iso(self.created_at),
        }
        if include_devices:
            result["devices"] = [d.to_dict() for d in self.devices]
        return result

    def __repr__(self):
        return f"<Site {self.id}: {self.label} ({self.city})>"
