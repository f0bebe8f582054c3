# Overview: Service-layer operations for bases and the equipment catalog.

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Base, EquipmentType
from ..permissions import require
from ..validation import coerce_text
from . import audit_service
from .access_service import restrict_to_scope
from .concurrency import run_in_transaction


def get_base(base_id: int) -> Base:
    base = db.session.get(Base, base_id)
    if not base:
        raise NotFoundError("Base not found", detail={"base_id": base_id})
    return base


def get_equipment_type(equipment_type_id: int) -> EquipmentType:
    equipment_type = db.session.get(EquipmentType, equipment_type_id)
    if not equipment_type:
        raise NotFoundError("Equipment type not found", detail={"equipment_type_id": equipment_type_id})
    return equipment_type


def require_equipment_types(equipment_type_ids) -> None:
    for equipment_type_id in sorted(set(equipment_type_ids)):
        get_equipment_type(equipment_type_id)


def create_base(actor, *, name, code, location=None) -> Base:
    require(actor.can_manage_master_data(), "manage bases")
    name = coerce_text(name, "name", max_length=120, required=True)
    code = coerce_text(code, "code", max_length=32, required=True).upper()
    location = coerce_text(location, "location", max_length=255)

    def _op():
        if db.session.query(Base.id).filter_by(code=code).first():
            raise ConflictError(f"Base code {code} already exists", detail={"code": code})
        base = Base(name=name, code=code, location=location)
        db.session.add(base)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError(f"Base code {code} already exists", detail={"code": code}) from exc
        return base

    base = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_BASE_CREATED,
        actor_id=actor.user_id,
        base_id=base.id,
        entity_type="base",
        entity_id=base.id,
        metadata={"code": base.code, "name": base.name},
    )
    return base


def list_bases(actor) -> list[Base]:
    """Bases visible to the caller, by code."""
    query = restrict_to_scope(db.session.query(Base), actor.resolve_scope(), Base.id)
    return query.order_by(Base.code.asc(), Base.id.asc()).all()


def create_equipment_type(actor, *, name, category=None, unit=None, is_serialized=False) -> EquipmentType:
    require(actor.can_manage_master_data(), "manage equipment types")
    name = coerce_text(name, "name", max_length=120, required=True)
    category = coerce_text(category, "category", max_length=64)
    unit = coerce_text(unit, "unit", max_length=32) or "unit"

    def _op():
        equipment_type = EquipmentType(
            name=name,
            category=category,
            unit=unit,
            is_serialized=bool(is_serialized),
        )
        db.session.add(equipment_type)
        db.session.flush()
        return equipment_type

    equipment_type = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_EQUIPMENT_TYPE_CREATED,
        actor_id=actor.user_id,
        entity_type="equipment_type",
        entity_id=equipment_type.id,
        metadata={"name": equipment_type.name, "category": equipment_type.category},
    )
    return equipment_type


def list_equipment_types(*, category: str | None = None) -> list[EquipmentType]:
    query = db.session.query(EquipmentType)
    if category:
        query = query.filter(EquipmentType.category == category)
    return query.order_by(EquipmentType.name.asc(), EquipmentType.id.asc()).all()
