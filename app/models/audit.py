"""
Field Service Platform
Audit domain model.

Models:
    - InterventionLog: immutable, append-only trail of intervention status
      changes (from, to, actor, note, timestamp).
"""

from app.models import db
from app.models.base import _utcnow, iso


class InterventionLog(db.Model):
    """
    Immutable audit row for one intervention status change.

    One row per assign/transition call. The integer PK is monotonic, so
    ordering by ``id`` preserves call order even when two rows share a
    timestamp. ``idempotency_key`` is the natural key of the call that
    produced the row; a replayed call with the same key writes nothing.
    """

    __tablename__ = "intervention_logs"
    __table_args__ = (
        db.Index("idx_ilog_intervention", "intervention_id", "created_at"),
        db.UniqueConstraint("idempotency_key", name="uq_ilog_idempotency_key"),
    )

    id = db.Column(db.Integer, primary_key=True)
    intervention_id = db.Column(
        db.String(36), db.ForeignKey("interventions.id", ondelete="CASCADE"),
        nullable=False,
    )
    status_from = db.Column(db.String(30), nullable=True)
    status_to = db.Column(db.String(30), nullable=False)
    created_by_id = db.Column(db.String(64), nullable=False)
    note = db.Column(db.Text, nullable=True)
    idempotency_key = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    intervention = db.relationship("Intervention", back_populates="logs")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "intervention_id": self.intervention_id,
            "status_from": self.status_from,
            "status_to": self.status_to,
            "created_by_id": self.created_by_id,
            "note": self.note,
            "idempotency_key": self.idempotency_key,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<InterventionLog {self.id}: {self.status_from} → {self.status_to} on {self.intervention_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_intervention_log(
    *,
    intervention_id: str,
    status_to: str,
    actor: str,
    status_from: str | None = None,
    note: str | None = None,
    idempotency_key: str | None = None,
) -> InterventionLog:
    """
    Append a single log row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) InterventionLog instance.
    """
    log = InterventionLog(
        intervention_id=intervention_id,
        status_from=status_from,
        status_to=status_to,
        created_by_id=actor,
        note=note,
        idempotency_key=idempotency_key,
    )
    db.session.add(log)
    db.session.flush()
    return log


def find_log_by_idempotency_key(idempotency_key: str | None) -> InterventionLog | None:
    """Return the log row already written for *idempotency_key*, if any."""
    if not idempotency_key:
        return None
    return InterventionLog.query.filter_by(idempotency_key=idempotency_key).first()
