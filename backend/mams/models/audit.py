from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Business audit trail.

    Written after the business transaction commits, by the audit sink.
    IMMUTABLE: append-only, never updated or deleted.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_action_created", "action", "created_at"),
        db.Index("ix_audit_logs_base_created", "base_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    action = db.Column(db.String(64), nullable=False, index=True)  # PURCHASE_CREATED, TRANSFER_RECEIVED, ...
    actor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=True)

    entity_type = db.Column(db.String(32), nullable=True)
    entity_id = db.Column(db.Integer, nullable=True)

    # "metadata" is reserved on declarative classes
    details = db.Column("metadata", db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "actor_id": self.actor_id,
            "base_id": self.base_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "metadata": self.details,
            "created_at": to_utc_z(self.created_at),
        }
