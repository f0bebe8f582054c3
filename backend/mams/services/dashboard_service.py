# Overview: Read-only dashboard rollups over the ledger and movement documents.

"""
Dashboard Semantics (authoritative)

For a base, an optional equipment type and a window [from, to]:
- opening = every movement kind strictly before ``from``
- closing = every movement kind up to and including ``to``
- purchases / transfer_in / transfer_out come from the ledger inside the
  window; transfer_out is reported as a positive magnitude
- assigned / expended are sums of Assignment / Expenditure line items whose
  own event timestamp falls inside the window
- net_movement = purchases + transfer_in - transfer_out

Ledger occurred_at always equals the causing document's event timestamp,
so the ledger-derived and document-derived figures use one time axis.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import Assignment, AssignmentItem, Expenditure, ExpenditureItem
from ..models.ledger import MOVEMENT_PURCHASE, MOVEMENT_TRANSFER_IN, MOVEMENT_TRANSFER_OUT
from ..time_utils import to_utc_z
from .ledger_service import NET_MOVEMENT_TYPES, get_balance
from .master_data_service import get_base


def _require_window(base_id, since, until) -> None:
    if base_id is None:
        raise ValidationError("baseId is required", field="baseId")
    if since is None:
        raise ValidationError("from is required", field="from")
    if until is None:
        raise ValidationError("to is required", field="to")
    if since > until:
        raise ValidationError("from must not be after to", field="from")


def _sum_line_items(item_model, parent_model, parent_fk, event_column, *, base_id, equipment_type_id, since, until) -> int:
    query = (
        db.session.query(func.coalesce(func.sum(item_model.quantity), 0))
        .join(parent_model, parent_model.id == parent_fk)
        .filter(parent_model.base_id == base_id, event_column >= since, event_column <= until)
    )
    if equipment_type_id is not None:
        query = query.filter(item_model.equipment_type_id == equipment_type_id)
    return int(query.scalar() or 0)


def _movement_totals(base_id: int, equipment_type_id: Optional[int], since: datetime, until: datetime) -> dict:
    purchases = get_balance(base_id, equipment_type_id, movement_types=[MOVEMENT_PURCHASE], since=since, until=until)
    transfer_in = get_balance(base_id, equipment_type_id, movement_types=[MOVEMENT_TRANSFER_IN], since=since, until=until)
    transfer_out = -get_balance(
        base_id, equipment_type_id, movement_types=[MOVEMENT_TRANSFER_OUT], since=since, until=until
    )
    return {
        "purchases": purchases,
        "transfer_in": transfer_in,
        "transfer_out": transfer_out,
        "net_movement": purchases + transfer_in - transfer_out,
    }


def summary(actor, *, base_id, equipment_type_id=None, since=None, until=None) -> dict:
    _require_window(base_id, since, until)
    actor.resolve_scope().require(base_id)
    get_base(base_id)

    opening = get_balance(base_id, equipment_type_id, before=since)
    closing = get_balance(base_id, equipment_type_id, until=until)

    assigned = _sum_line_items(
        AssignmentItem, Assignment, AssignmentItem.assignment_id, Assignment.assigned_at,
        base_id=base_id, equipment_type_id=equipment_type_id, since=since, until=until,
    )
    expended = _sum_line_items(
        ExpenditureItem, Expenditure, ExpenditureItem.expenditure_id, Expenditure.expended_at,
        base_id=base_id, equipment_type_id=equipment_type_id, since=since, until=until,
    )

    result = {
        "base_id": base_id,
        "equipment_type_id": equipment_type_id,
        "from": to_utc_z(since),
        "to": to_utc_z(until),
        "opening": opening,
        "closing": closing,
        "assigned": assigned,
        "expended": expended,
        "movement_opening": get_balance(base_id, equipment_type_id, movement_types=NET_MOVEMENT_TYPES, before=since),
        "movement_closing": get_balance(base_id, equipment_type_id, movement_types=NET_MOVEMENT_TYPES, until=until),
        "on_hand_opening": opening,
        "on_hand_closing": closing,
    }
    result.update(_movement_totals(base_id, equipment_type_id, since, until))
    return result


def net_movement(actor, *, base_id, equipment_type_id=None, since=None, until=None) -> dict:
    _require_window(base_id, since, until)
    actor.resolve_scope().require(base_id)
    get_base(base_id)

    result = {
        "base_id": base_id,
        "equipment_type_id": equipment_type_id,
        "from": to_utc_z(since),
        "to": to_utc_z(until),
    }
    result.update(_movement_totals(base_id, equipment_type_id, since, until))
    return result
