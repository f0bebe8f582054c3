# Overview: Service-layer operations for expenditures, direct or against an assignment.

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..errors import ExceedsRemainingError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Assignment, Expenditure, ExpenditureItem
from ..models.ledger import MOVEMENT_EXPEND
from ..permissions import require
from ..validation import coerce_event_time, coerce_id, coerce_optional_int, coerce_text, normalize_items
from . import audit_service
from .access_service import restrict_to_scope
from .assignment_service import get_assignment_usage
from .concurrency import run_in_transaction
from .ledger_service import LedgerPosting, lock_positions, post_entries, require_available
from .master_data_service import get_base, require_equipment_types


def _check_remaining(assignment: Assignment, base_id: int, requested: dict[int, int]) -> None:
    if assignment.base_id != base_id:
        raise ValidationError(
            "Assignment belongs to a different base",
            field="related_assignment_id",
            detail={"assignment_base_id": assignment.base_id, "base_id": base_id},
        )

    assigned = {item.equipment_type_id: item.quantity for item in assignment.items}
    used = get_assignment_usage(assignment.id)
    for equipment_type_id, quantity in sorted(requested.items()):
        # A type that was never assigned has nothing remaining
        total = assigned.get(equipment_type_id, 0)
        already = used.get(equipment_type_id, 0)
        if quantity > total - already:
            raise ExceedsRemainingError(
                equipment_type_id=equipment_type_id,
                assigned=total,
                already_expended=already,
                requested=quantity,
            )


def create_expenditure(
    actor,
    *,
    base_id,
    reason,
    items,
    related_assignment_id=None,
    expended_at=None,
) -> Expenditure:
    """
    Record consumption of stock.

    Linked to an assignment: consumes the assignment's remaining quantity and
    posts nothing (the ASSIGN row already reduced base stock).
    Direct: checked against the base balance and posted as EXPEND rows.

    Both paths lock the (base, type) keys first so that concurrent
    expenditures against the same key serialize.
    """
    require(actor.can_create_expenditure(), "record expenditures")

    base_id = coerce_id(base_id, "base_id")
    reason = coerce_text(reason, "reason", max_length=2000, required=True)
    related_assignment_id = coerce_optional_int(related_assignment_id, "related_assignment_id")
    expended_at = coerce_event_time(expended_at, "expended_at")
    requested = normalize_items(items)

    actor.resolve_scope().require(base_id)

    def _op():
        get_base(base_id)
        require_equipment_types(requested)

        lock_positions((base_id, equipment_type_id) for equipment_type_id in requested)

        if related_assignment_id is not None:
            assignment = db.session.get(Assignment, related_assignment_id)
            if not assignment:
                raise NotFoundError(
                    "Assignment not found",
                    detail={"assignment_id": related_assignment_id},
                )
            _check_remaining(assignment, base_id, requested)
        else:
            for equipment_type_id, quantity in sorted(requested.items()):
                require_available(base_id, equipment_type_id, quantity)

        expenditure = Expenditure(
            base_id=base_id,
            reason=reason,
            related_assignment_id=related_assignment_id,
            expended_at=expended_at,
            created_by_user_id=actor.user_id,
        )
        db.session.add(expenditure)
        db.session.flush()

        for equipment_type_id, quantity in sorted(requested.items()):
            db.session.add(
                ExpenditureItem(
                    expenditure_id=expenditure.id,
                    equipment_type_id=equipment_type_id,
                    quantity=quantity,
                )
            )

        if related_assignment_id is None:
            post_entries(
                [
                    LedgerPosting(base_id, equipment_type_id, MOVEMENT_EXPEND, -quantity)
                    for equipment_type_id, quantity in sorted(requested.items())
                ],
                ref_type="expenditure",
                ref_id=expenditure.id,
                occurred_at=expended_at,
                actor_id=actor.user_id,
            )
        else:
            db.session.flush()
        return expenditure

    expenditure = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_EXPENDITURE_CREATED,
        actor_id=actor.user_id,
        base_id=base_id,
        entity_type="expenditure",
        entity_id=expenditure.id,
        metadata={
            "reason": reason,
            "related_assignment_id": related_assignment_id,
            "items": [{"equipment_type_id": k, "quantity": v} for k, v in sorted(requested.items())],
        },
    )
    return expenditure


def list_expenditures(
    actor,
    *,
    base_id=None,
    equipment_type_id=None,
    related_assignment_id=None,
    since=None,
    until=None,
    limit: int = 20,
    offset: int = 0,
) -> list[Expenditure]:
    query = restrict_to_scope(
        db.session.query(Expenditure).options(selectinload(Expenditure.items)),
        actor.resolve_scope(),
        Expenditure.base_id,
        base_id=base_id,
    )
    if equipment_type_id is not None:
        query = query.filter(Expenditure.items.any(ExpenditureItem.equipment_type_id == equipment_type_id))
    if related_assignment_id is not None:
        query = query.filter(Expenditure.related_assignment_id == related_assignment_id)
    if since is not None:
        query = query.filter(Expenditure.expended_at >= since)
    if until is not None:
        query = query.filter(Expenditure.expended_at <= until)
    return (
        query.order_by(Expenditure.expended_at.desc(), Expenditure.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
