from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

"""
MAMS Inventory Ledger Invariants (authoritative)

- inventory_ledger is append-only: rows are never updated or deleted.
  Corrections are new offsetting rows.
- Stock for (base, equipment type) is SUM(qty_change); it is never stored
  as the source of truth anywhere else.
- One row per causing event: (ref_type, ref_id, movement_type, base_id,
  equipment_type_id) is unique, so replaying an event is rejected.
- PURCHASE and TRANSFER_IN are positive; ASSIGN, EXPEND and TRANSFER_OUT
  are negative.
- stock_positions is a per-key accumulator used as the lock target for
  check-then-act sequences. Its on_hand column mirrors the ledger sum and is
  verifiable against it; it is never read to make a stock decision.
"""

MOVEMENT_PURCHASE = "PURCHASE"
MOVEMENT_ASSIGN = "ASSIGN"
MOVEMENT_EXPEND = "EXPEND"
MOVEMENT_TRANSFER_IN = "TRANSFER_IN"
MOVEMENT_TRANSFER_OUT = "TRANSFER_OUT"

MOVEMENT_TYPES = (
    MOVEMENT_PURCHASE,
    MOVEMENT_ASSIGN,
    MOVEMENT_EXPEND,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TRANSFER_OUT,
)
INBOUND_MOVEMENTS = (MOVEMENT_PURCHASE, MOVEMENT_TRANSFER_IN)
OUTBOUND_MOVEMENTS = (MOVEMENT_ASSIGN, MOVEMENT_EXPEND, MOVEMENT_TRANSFER_OUT)


def _in_list(values) -> str:
    return ", ".join(f"'{v}'" for v in values)


class LedgerEntry(db.Model):
    __tablename__ = "inventory_ledger"
    __table_args__ = (
        db.UniqueConstraint(
            "ref_type", "ref_id", "movement_type", "base_id", "equipment_type_id",
            name="uq_ledger_causing_event",
        ),
        db.CheckConstraint(
            f"movement_type IN ({_in_list(MOVEMENT_TYPES)})",
            name="ck_ledger_movement_type",
        ),
        db.CheckConstraint(
            f"(movement_type IN ({_in_list(INBOUND_MOVEMENTS)}) AND qty_change > 0)"
            f" OR (movement_type IN ({_in_list(OUTBOUND_MOVEMENTS)}) AND qty_change < 0)",
            name="ck_ledger_qty_sign",
        ),
        db.Index("ix_ledger_base_type_occurred", "base_id", "equipment_type_id", "occurred_at"),
        db.Index("ix_ledger_base_type_move_occurred", "base_id", "equipment_type_id", "movement_type", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)
    qty_change = db.Column(db.Integer, nullable=False)

    # Causing entity: "purchase" | "assignment" | "expenditure" | "transfer"
    ref_type = db.Column(db.String(32), nullable=False)
    ref_id = db.Column(db.Integer, nullable=False)

    # Business time (the causing entity's event timestamp)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry id={self.id} base={self.base_id} type={self.equipment_type_id} "
            f"{self.movement_type} {self.qty_change:+d}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "base_id": self.base_id,
            "equipment_type_id": self.equipment_type_id,
            "movement_type": self.movement_type,
            "qty_change": self.qty_change,
            "ref_type": self.ref_type,
            "ref_id": self.ref_id,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(LedgerEntry, "before_update")
def _reject_ledger_update(mapper, connection, target):
    raise RuntimeError(f"Ledger entry {target.id} is immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _reject_ledger_delete(mapper, connection, target):
    raise RuntimeError(f"Ledger entry {target.id} is immutable")


class StockPosition(db.Model):
    """
    Per (base, equipment type) accumulator row.

    Stock-reducing commands bump ``version`` before reading balances so that
    concurrent writers on the same key are serialized by the database.
    """
    __tablename__ = "stock_positions"
    __table_args__ = (
        db.UniqueConstraint("base_id", "equipment_type_id", name="uq_stock_positions_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False, index=True)
    on_hand = db.Column(db.Integer, nullable=False, default=0)
    version = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "base_id": self.base_id,
            "equipment_type_id": self.equipment_type_id,
            "on_hand": self.on_hand,
            "version": self.version,
            "updated_at": to_utc_z(self.updated_at),
        }
