from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

TRANSFER_STATUS_DRAFT = "DRAFT"
TRANSFER_STATUS_APPROVED = "APPROVED"
TRANSFER_STATUS_DISPATCHED = "DISPATCHED"
TRANSFER_STATUS_RECEIVED = "RECEIVED"

TRANSFER_STATUSES = (
    TRANSFER_STATUS_DRAFT,
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_DISPATCHED,
    TRANSFER_STATUS_RECEIVED,
)


class Purchase(db.Model):
    """Single-item stock increase. Always posts one PURCHASE ledger row."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),
        db.Index("ix_purchases_base_purchased", "base_id", "purchased_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    purchased_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    vendor = db.Column(db.String(255), nullable=True)
    reference = db.Column(db.String(128), nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "base_id": self.base_id,
            "equipment_type_id": self.equipment_type_id,
            "quantity": self.quantity,
            "purchased_at": to_utc_z(self.purchased_at),
            "vendor": self.vendor,
            "reference": self.reference,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }


class Assignment(db.Model):
    """
    Stock handed to a person.

    Creating an assignment posts one ASSIGN ledger row per equipment type.
    Expenditures linked to the assignment consume its remaining quantity
    and post nothing further to the ledger.
    """
    __tablename__ = "assignments"
    __table_args__ = (
        db.Index("ix_assignments_base_assigned", "base_id", "assigned_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    assignee_name = db.Column(db.String(255), nullable=False)
    assignee_ref = db.Column(db.String(128), nullable=True)
    assigned_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    notes = db.Column(db.Text, nullable=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    items = db.relationship(
        "AssignmentItem", back_populates="assignment", lazy=True, order_by="AssignmentItem.equipment_type_id"
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "base_id": self.base_id,
            "assignee_name": self.assignee_name,
            "assignee_ref": self.assignee_ref,
            "assigned_at": to_utc_z(self.assigned_at),
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class AssignmentItem(db.Model):
    __tablename__ = "assignment_items"
    __table_args__ = (
        db.UniqueConstraint("assignment_id", "equipment_type_id", name="uq_assignment_items_type"),
        db.CheckConstraint("quantity > 0", name="ck_assignment_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    assignment = db.relationship("Assignment", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "equipment_type_id": self.equipment_type_id,
            "quantity": self.quantity,
        }


class Expenditure(db.Model):
    """
    Consumption of stock.

    related_assignment_id set: consumes from the assignment's remaining
    quantity, no ledger row. Otherwise: direct from base, posts EXPEND rows.
    """
    __tablename__ = "expenditures"
    __table_args__ = (
        db.Index("ix_expenditures_base_expended", "base_id", "expended_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    related_assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id"), nullable=True, index=True)
    expended_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    related_assignment = db.relationship(
        "Assignment",
        backref=db.backref("expenditures", lazy=True),
    )
    items = db.relationship(
        "ExpenditureItem", back_populates="expenditure", lazy=True, order_by="ExpenditureItem.equipment_type_id"
    )

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "base_id": self.base_id,
            "reason": self.reason,
            "related_assignment_id": self.related_assignment_id,
            "expended_at": to_utc_z(self.expended_at),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ExpenditureItem(db.Model):
    __tablename__ = "expenditure_items"
    __table_args__ = (
        db.UniqueConstraint("expenditure_id", "equipment_type_id", name="uq_expenditure_items_type"),
        db.CheckConstraint("quantity > 0", name="ck_expenditure_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    expenditure_id = db.Column(db.Integer, db.ForeignKey("expenditures.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    expenditure = db.relationship("Expenditure", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "expenditure_id": self.expenditure_id,
            "equipment_type_id": self.equipment_type_id,
            "quantity": self.quantity,
        }


class Transfer(db.Model):
    """
    Cross-base movement document.

    LIFECYCLE (forward only):
    1. DRAFT: created with items by logistics/admin
    2. APPROVED: by admin or the from-base commander
    3. DISPATCHED: by admin or logistics
    4. RECEIVED: by admin or the to-base commander; posts TRANSFER_OUT on
       from_base and TRANSFER_IN on to_base for every item, atomically

    status is the only mutable field group; version_id makes concurrent
    transitions of the same transfer fail with StaleDataError.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('DRAFT', 'APPROVED', 'DISPATCHED', 'RECEIVED')",
            name="ck_transfers_status",
        ),
        db.CheckConstraint("from_base_id <> to_base_id", name="ck_transfers_distinct_bases"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    from_base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)
    to_base_id = db.Column(db.Integer, db.ForeignKey("bases.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=TRANSFER_STATUS_DRAFT, index=True)
    notes = db.Column(db.Text, nullable=True)

    # User attribution for each lifecycle stage
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    dispatched_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    received_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    dispatched_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    from_base = db.relationship("Base", foreign_keys=[from_base_id])
    to_base = db.relationship("Base", foreign_keys=[to_base_id])
    items = db.relationship(
        "TransferItem", back_populates="transfer", lazy=True, order_by="TransferItem.equipment_type_id"
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "from_base_id": self.from_base_id,
            "to_base_id": self.to_base_id,
            "status": self.status,
            "notes": self.notes,
            "created_by_user_id": self.created_by_user_id,
            "approved_by_user_id": self.approved_by_user_id,
            "dispatched_by_user_id": self.dispatched_by_user_id,
            "received_by_user_id": self.received_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "dispatched_at": to_utc_z(self.dispatched_at) if self.dispatched_at else None,
            "received_at": to_utc_z(self.received_at) if self.received_at else None,
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransferItem(db.Model):
    __tablename__ = "transfer_items"
    __table_args__ = (
        db.UniqueConstraint("transfer_id", "equipment_type_id", name="uq_transfer_items_type"),
        db.CheckConstraint("quantity > 0", name="ck_transfer_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transfer_id = db.Column(db.Integer, db.ForeignKey("transfers.id"), nullable=False, index=True)
    equipment_type_id = db.Column(db.Integer, db.ForeignKey("equipment_types.id"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    transfer = db.relationship("Transfer", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transfer_id": self.transfer_id,
            "equipment_type_id": self.equipment_type_id,
            "quantity": self.quantity,
        }
