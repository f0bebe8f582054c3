# Overview: Service-layer operations for assignments of stock to personnel.

from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..errors import NotFoundError
from ..extensions import db
from ..models import Assignment, AssignmentItem, Expenditure, ExpenditureItem
from ..models.ledger import MOVEMENT_ASSIGN
from ..permissions import require
from ..validation import coerce_event_time, coerce_id, coerce_text, normalize_items
from . import audit_service
from .access_service import restrict_to_scope
from .concurrency import run_in_transaction
from .ledger_service import LedgerPosting, lock_positions, post_entries, require_available
from .master_data_service import get_base, require_equipment_types


def create_assignment(
    actor,
    *,
    base_id,
    assignee_name,
    items,
    assignee_ref=None,
    assigned_at=None,
    notes=None,
) -> Assignment:
    """
    Hand stock at a base to a person.

    Every requested equipment type is locked, checked against the base
    balance and reduced with an ASSIGN row, all in one transaction.
    """
    require(actor.can_create_assignment(), "create assignments")

    base_id = coerce_id(base_id, "base_id")
    assignee_name = coerce_text(assignee_name, "assignee_name", max_length=255, required=True)
    assignee_ref = coerce_text(assignee_ref, "assignee_ref", max_length=128)
    notes = coerce_text(notes, "notes", max_length=2000)
    assigned_at = coerce_event_time(assigned_at, "assigned_at")
    requested = normalize_items(items)

    actor.resolve_scope().require(base_id)

    def _op():
        get_base(base_id)
        require_equipment_types(requested)

        lock_positions((base_id, equipment_type_id) for equipment_type_id in requested)
        for equipment_type_id, quantity in sorted(requested.items()):
            require_available(base_id, equipment_type_id, quantity)

        assignment = Assignment(
            base_id=base_id,
            assignee_name=assignee_name,
            assignee_ref=assignee_ref,
            assigned_at=assigned_at,
            notes=notes,
            created_by_user_id=actor.user_id,
        )
        db.session.add(assignment)
        db.session.flush()

        for equipment_type_id, quantity in sorted(requested.items()):
            db.session.add(
                AssignmentItem(
                    assignment_id=assignment.id,
                    equipment_type_id=equipment_type_id,
                    quantity=quantity,
                )
            )

        post_entries(
            [
                LedgerPosting(base_id, equipment_type_id, MOVEMENT_ASSIGN, -quantity)
                for equipment_type_id, quantity in sorted(requested.items())
            ],
            ref_type="assignment",
            ref_id=assignment.id,
            occurred_at=assigned_at,
            actor_id=actor.user_id,
        )
        return assignment

    assignment = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_ASSIGNMENT_CREATED,
        actor_id=actor.user_id,
        base_id=base_id,
        entity_type="assignment",
        entity_id=assignment.id,
        metadata={
            "assignee_name": assignee_name,
            "items": [{"equipment_type_id": k, "quantity": v} for k, v in sorted(requested.items())],
        },
    )
    return assignment


def get_assignment_usage(assignment_id: int) -> dict[int, int]:
    """Quantity already consumed per equipment type by linked expenditures."""
    rows = (
        db.session.query(
            ExpenditureItem.equipment_type_id,
            func.coalesce(func.sum(ExpenditureItem.quantity), 0),
        )
        .join(Expenditure, Expenditure.id == ExpenditureItem.expenditure_id)
        .filter(Expenditure.related_assignment_id == assignment_id)
        .group_by(ExpenditureItem.equipment_type_id)
        .all()
    )
    return {equipment_type_id: int(total) for equipment_type_id, total in rows}


def describe_remaining(assignment: Assignment) -> list[dict]:
    usage = get_assignment_usage(assignment.id)
    lines = []
    for item in assignment.items:
        expended = usage.get(item.equipment_type_id, 0)
        lines.append(
            {
                "equipment_type_id": item.equipment_type_id,
                "assigned": item.quantity,
                "expended": expended,
                "remaining": item.quantity - expended,
            }
        )
    return lines


def get_assignment(actor, assignment_id: int) -> Assignment:
    assignment = db.session.get(Assignment, assignment_id)
    if not assignment:
        raise NotFoundError("Assignment not found", detail={"assignment_id": assignment_id})
    actor.resolve_scope().require(assignment.base_id)
    return assignment


def list_assignments(
    actor,
    *,
    base_id=None,
    equipment_type_id=None,
    since=None,
    until=None,
    limit: int = 20,
    offset: int = 0,
) -> list[Assignment]:
    query = restrict_to_scope(
        db.session.query(Assignment).options(selectinload(Assignment.items)),
        actor.resolve_scope(),
        Assignment.base_id,
        base_id=base_id,
    )
    if equipment_type_id is not None:
        query = query.filter(Assignment.items.any(AssignmentItem.equipment_type_id == equipment_type_id))
    if since is not None:
        query = query.filter(Assignment.assigned_at >= since)
    if until is not None:
        query = query.filter(Assignment.assigned_at <= until)
    return (
        query.order_by(Assignment.assigned_at.desc(), Assignment.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
