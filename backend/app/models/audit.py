from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class AuditLogEntry(db.Model):
    """
    Append-only record of a state-changing action.

    performed_by is the acting user's email, or "SYSTEM".
    target_id is usually an order id; may be a product or user id.
    No updates or deletes.
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_target_occurred", "target_id", "occurred_at"),
    )

    # Insertion order; the public identifier is entry_id
    seq = db.Column(db.Integer, primary_key=True, autoincrement=True)
    entry_id = db.Column(db.String(64), nullable=False, unique=True)

    action = db.Column(db.String(64), nullable=False, index=True)
    performed_by = db.Column(db.String(255), nullable=False)
    target_id = db.Column(db.String(64), nullable=False, index=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    details = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.entry_id,
            "action": self.action,
            "performed_by": self.performed_by,
            "target_id": self.target_id,
            "timestamp": to_utc_z(self.occurred_at),
            "details": self.details,
        }
