# backend/mams/services/transfer_service.py
"""
Inter-base transfer service.

Manages equipment transfers between bases with a forward-only workflow and
per-stage accountability. Only receipt touches the ledger.

LIFECYCLE:
1. DRAFT: transfer created with line items (admin, logistics)
2. APPROVED: approved by admin or the from-base commander
3. DISPATCHED: shipped by admin or logistics
4. RECEIVED: received by admin or the to-base commander; posts
   TRANSFER_OUT (from_base) and TRANSFER_IN (to_base) for every line in the
   same transaction as the status change

Stock is not reserved while a transfer is in flight. Receipt re-checks the
from-base balance under the key locks and is rejected as a whole when any
line is short.

Each transition is checked in this order: transfer exists (404), caller may
perform it (403), transfer is in the predecessor state (400).
"""
from __future__ import annotations

from typing import Callable, Optional

from sqlalchemy.orm import selectinload

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Transfer, TransferItem
from ..models.ledger import MOVEMENT_TRANSFER_IN, MOVEMENT_TRANSFER_OUT
from ..models.movements import (
    TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_DISPATCHED,
    TRANSFER_STATUS_DRAFT,
    TRANSFER_STATUS_RECEIVED,
    TRANSFER_STATUSES,
)
from ..permissions import require
from ..time_utils import utcnow
from ..validation import coerce_id, coerce_text, normalize_items
from . import audit_service
from .access_service import restrict_to_scope
from .concurrency import run_in_transaction
from .ledger_service import LedgerPosting, lock_positions, post_entries, require_available
from .master_data_service import get_base, require_equipment_types

PREDECESSOR = {
    TRANSFER_STATUS_APPROVED: TRANSFER_STATUS_DRAFT,
    TRANSFER_STATUS_DISPATCHED: TRANSFER_STATUS_APPROVED,
    TRANSFER_STATUS_RECEIVED: TRANSFER_STATUS_DISPATCHED,
}


def create_transfer(actor, *, from_base_id, to_base_id, items, notes=None) -> Transfer:
    """
    Create a DRAFT transfer. The caller must have the from-base in scope.

    Raises:
        AuthorizationError: role may not create transfers, or from-base out of scope
        ValidationError: same base on both sides, malformed items
        NotFoundError: unknown base or equipment type
    """
    require(actor.can_create_transfer(), "create transfers")

    from_base_id = coerce_id(from_base_id, "from_base_id")
    to_base_id = coerce_id(to_base_id, "to_base_id")
    if from_base_id == to_base_id:
        raise ValidationError("from_base_id and to_base_id must differ", field="to_base_id")
    requested = normalize_items(items)
    notes = coerce_text(notes, "notes", max_length=2000)

    actor.resolve_scope().require(from_base_id)

    def _op():
        get_base(from_base_id)
        get_base(to_base_id)
        require_equipment_types(requested)

        transfer = Transfer(
            from_base_id=from_base_id,
            to_base_id=to_base_id,
            status=TRANSFER_STATUS_DRAFT,
            notes=notes,
            created_by_user_id=actor.user_id,
        )
        db.session.add(transfer)
        db.session.flush()

        for equipment_type_id, quantity in sorted(requested.items()):
            db.session.add(
                TransferItem(
                    transfer_id=transfer.id,
                    equipment_type_id=equipment_type_id,
                    quantity=quantity,
                )
            )
        db.session.flush()
        return transfer

    transfer = run_in_transaction(_op)
    audit_service.record(
        audit_service.ACTION_TRANSFER_CREATED,
        actor_id=actor.user_id,
        base_id=from_base_id,
        entity_type="transfer",
        entity_id=transfer.id,
        metadata={
            "to_base_id": to_base_id,
            "items": [{"equipment_type_id": k, "quantity": v} for k, v in sorted(requested.items())],
        },
    )
    return transfer


def _load_transfer(transfer_id: int) -> Transfer:
    transfer = db.session.get(Transfer, transfer_id)
    if not transfer:
        raise NotFoundError("Transfer not found", detail={"transfer_id": transfer_id})
    return transfer


def _require_predecessor(transfer: Transfer, target: str) -> None:
    if transfer.status != PREDECESSOR[target]:
        raise InvalidTransitionError(transfer.id, transfer.status, target)


def _transition(
    actor,
    transfer_id: int,
    *,
    target: str,
    authorize: Callable[[Transfer], None],
    apply: Callable[[Transfer], None],
    action: str,
    audit_base: Callable[[Transfer], int],
) -> Transfer:
    """
    Load, authorize, state-check and apply one lifecycle step.

    The status change is flushed first so that a concurrent transition of
    the same transfer fails its version check; the retry then reloads the
    transfer and reports the new status as an invalid transition.
    """
    def _op():
        transfer = _load_transfer(transfer_id)
        authorize(transfer)
        _require_predecessor(transfer, target)

        transfer.status = target
        db.session.flush()
        apply(transfer)
        return transfer

    transfer = run_in_transaction(_op)
    audit_service.record(
        action,
        actor_id=actor.user_id,
        base_id=audit_base(transfer),
        entity_type="transfer",
        entity_id=transfer.id,
        metadata={"from_base_id": transfer.from_base_id, "to_base_id": transfer.to_base_id},
    )
    return transfer


def approve_transfer(actor, transfer_id: int) -> Transfer:
    def _authorize(transfer: Transfer) -> None:
        require(actor.can_approve_transfer(transfer), "approve this transfer")
        actor.resolve_scope().require(transfer.from_base_id)

    def _apply(transfer: Transfer) -> None:
        transfer.approved_by_user_id = actor.user_id
        transfer.approved_at = utcnow()

    return _transition(
        actor,
        transfer_id,
        target=TRANSFER_STATUS_APPROVED,
        authorize=_authorize,
        apply=_apply,
        action=audit_service.ACTION_TRANSFER_APPROVED,
        audit_base=lambda t: t.from_base_id,
    )


def dispatch_transfer(actor, transfer_id: int) -> Transfer:
    def _authorize(transfer: Transfer) -> None:
        require(actor.can_dispatch_transfer(), "dispatch transfers")
        actor.resolve_scope().require(transfer.from_base_id)

    def _apply(transfer: Transfer) -> None:
        transfer.dispatched_by_user_id = actor.user_id
        transfer.dispatched_at = utcnow()

    return _transition(
        actor,
        transfer_id,
        target=TRANSFER_STATUS_DISPATCHED,
        authorize=_authorize,
        apply=_apply,
        action=audit_service.ACTION_TRANSFER_DISPATCHED,
        audit_base=lambda t: t.from_base_id,
    )


def receive_transfer(actor, transfer_id: int) -> Transfer:
    """
    DISPATCHED -> RECEIVED, posting both sides of every line atomically.

    Raises:
        InsufficientStockError: from-base can no longer cover a line
        InvalidTransitionError: not DISPATCHED (including already RECEIVED)
    """
    def _authorize(transfer: Transfer) -> None:
        require(actor.can_receive_transfer(transfer), "receive this transfer")
        actor.resolve_scope().require(transfer.to_base_id)

    def _apply(transfer: Transfer) -> None:
        received_at = utcnow()
        transfer.received_by_user_id = actor.user_id
        transfer.received_at = received_at

        lines = sorted((item.equipment_type_id, item.quantity) for item in transfer.items)
        lock_positions(
            [(transfer.from_base_id, equipment_type_id) for equipment_type_id, _ in lines]
            + [(transfer.to_base_id, equipment_type_id) for equipment_type_id, _ in lines]
        )
        for equipment_type_id, quantity in lines:
            require_available(transfer.from_base_id, equipment_type_id, quantity)

        postings = []
        for equipment_type_id, quantity in lines:
            postings.append(
                LedgerPosting(transfer.from_base_id, equipment_type_id, MOVEMENT_TRANSFER_OUT, -quantity)
            )
            postings.append(
                LedgerPosting(transfer.to_base_id, equipment_type_id, MOVEMENT_TRANSFER_IN, quantity)
            )
        post_entries(
            postings,
            ref_type="transfer",
            ref_id=transfer.id,
            occurred_at=received_at,
            actor_id=actor.user_id,
        )

    return _transition(
        actor,
        transfer_id,
        target=TRANSFER_STATUS_RECEIVED,
        authorize=_authorize,
        apply=_apply,
        action=audit_service.ACTION_TRANSFER_RECEIVED,
        audit_base=lambda t: t.to_base_id,
    )


def get_transfer(actor, transfer_id: int) -> Transfer:
    """A transfer is visible when either side is in the caller's scope."""
    transfer = _load_transfer(transfer_id)
    scope = actor.resolve_scope()
    if not (scope.allows(transfer.from_base_id) or scope.allows(transfer.to_base_id)):
        scope.require(transfer.from_base_id)
    return transfer


def list_transfers(
    actor,
    *,
    base_id: Optional[int] = None,
    from_base_id: Optional[int] = None,
    to_base_id: Optional[int] = None,
    status: Optional[str] = None,
    equipment_type_id: Optional[int] = None,
    since=None,
    until=None,
    limit: int = 20,
    offset: int = 0,
) -> list[Transfer]:
    if status is not None and status not in TRANSFER_STATUSES:
        raise ValidationError(
            f"status must be one of {', '.join(TRANSFER_STATUSES)}",
            field="status",
        )

    query = restrict_to_scope(
        db.session.query(Transfer).options(selectinload(Transfer.items)),
        actor.resolve_scope(),
        Transfer.from_base_id,
        Transfer.to_base_id,
        base_id=base_id,
    )
    if from_base_id is not None:
        query = query.filter(Transfer.from_base_id == from_base_id)
    if to_base_id is not None:
        query = query.filter(Transfer.to_base_id == to_base_id)
    if status is not None:
        query = query.filter(Transfer.status == status)
    if equipment_type_id is not None:
        query = query.filter(Transfer.items.any(TransferItem.equipment_type_id == equipment_type_id))
    if since is not None:
        query = query.filter(Transfer.created_at >= since)
    if until is not None:
        query = query.filter(Transfer.created_at <= until)
    return (
        query.order_by(Transfer.created_at.desc(), Transfer.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
