from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Base(db.Model):
    """
    A military base: the unit of stock ownership and access scope.

    Master data, created by admin action. Identity and code are immutable;
    name and location are soft attributes.
    """
    __tablename__ = "bases"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    location = db.Column(db.String(255), nullable=True)
    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Base id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }


class EquipmentType(db.Model):
    """Catalog entry for a kind of equipment. Immutable once created."""
    __tablename__ = "equipment_types"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    category = db.Column(db.String(64), nullable=True, index=True)
    unit = db.Column(db.String(32), nullable=False, default="unit")
    is_serialized = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<EquipmentType id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "unit": self.unit,
            "is_serialized": self.is_serialized,
            "created_at": to_utc_z(self.created_at),
        }
