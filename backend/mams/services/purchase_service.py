# Overview: Service-layer operations for purchases; each posts one PURCHASE ledger row.

from __future__ import annotations

from ..extensions import db
from ..models import Purchase
from ..models.ledger import MOVEMENT_PURCHASE
from ..permissions import require
from ..validation import coerce_event_time, coerce_id, coerce_quantity, coerce_text
from . import audit_service
from .access_service import restrict_to_scope
from .concurrency import run_in_transaction
from .ledger_service import LedgerPosting, post_entries
from .master_data_service import get_base, get_equipment_type


def create_purchase(
    actor,
    *,
    base_id,
    equipment_type_id,
    quantity,
    purchased_at=None,
    vendor=None,
    reference=None,
) -> Purchase:
    """
    Record a purchase and its PURCHASE ledger row in one transaction.

    Purchases only add stock, so there is no availability check.
    """
    require(actor.can_record_purchase(), "record purchases")

    base_id = coerce_id(base_id, "base_id")
    equipment_type_id = coerce_id(equipment_type_id, "equipment_type_id")
    quantity = coerce_quantity(quantity)
    purchased_at = coerce_event_time(purchased_at, "purchased_at")
    vendor = coerce_text(vendor, "vendor", max_length=255)
    reference = coerce_text(reference, "reference", max_length=128)

    actor.resolve_scope().require(base_id)

    def _op():
        get_base(base_id)
        get_equipment_type(equipment_type_id)

        purchase = Purchase(
            base_id=base_id,
            equipment_type_id=equipment_type_id,
            quantity=quantity,
            purchased_at=purchased_at,
            vendor=vendor,
            reference=reference,
            created_by_user_id=actor.user_id,
        )
        db.session.add(purchase)
        db.session.flush()

        post_entries(
            [LedgerPosting(base_id, equipment_type_id, MOVEMENT_PURCHASE, quantity)],
            ref_type="purchase",
            ref_id=purchase.id,
            occurred_at=purchased_at,
            actor_id=actor.user_id,
        )
        return purchase

    purchase = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_PURCHASE_CREATED,
        actor_id=actor.user_id,
        base_id=base_id,
        entity_type="purchase",
        entity_id=purchase.id,
        metadata={"equipment_type_id": equipment_type_id, "quantity": quantity},
    )
    return purchase


def list_purchases(
    actor,
    *,
    base_id=None,
    equipment_type_id=None,
    since=None,
    until=None,
    limit: int = 20,
    offset: int = 0,
) -> list[Purchase]:
    query = restrict_to_scope(db.session.query(Purchase), actor.resolve_scope(), Purchase.base_id, base_id=base_id)
    if equipment_type_id is not None:
        query = query.filter(Purchase.equipment_type_id == equipment_type_id)
    if since is not None:
        query = query.filter(Purchase.purchased_at >= since)
    if until is not None:
        query = query.filter(Purchase.purchased_at <= until)
    return (
        query.order_by(Purchase.purchased_at.desc(), Purchase.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
