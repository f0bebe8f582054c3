# Overview: Service-layer operations for the inventory ledger; balances, key locks and postings.

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicatePostingError, InsufficientStockError, ValidationError
from ..extensions import db
from ..models import LedgerEntry, StockPosition
from ..models.ledger import (
    INBOUND_MOVEMENTS,
    MOVEMENT_PURCHASE,
    MOVEMENT_TRANSFER_IN,
    MOVEMENT_TRANSFER_OUT,
    MOVEMENT_TYPES,
)
from ..time_utils import to_utc_z
from .access_service import restrict_to_scope

"""
MAMS Balance & Posting Semantics (authoritative)

- balance(base, type) = SUM(qty_change) over matching ledger rows.
- Time bounds: ``since`` and ``until`` are inclusive, ``before`` is strict.
- Net movement is the sum restricted to PURCHASE, TRANSFER_IN, TRANSFER_OUT.
- A stock-reducing command must call lock_positions() for every key it
  touches BEFORE reading any balance, then read, check and post in the same
  transaction. The lock is released on commit/rollback.
- post_entries() re-checks every key it reduced and aborts if any went
  negative, so a caller that forgot to check cannot commit an overdraft.
"""

NET_MOVEMENT_TYPES = (MOVEMENT_PURCHASE, MOVEMENT_TRANSFER_IN, MOVEMENT_TRANSFER_OUT)


@dataclass(frozen=True)
class LedgerPosting:
    base_id: int
    equipment_type_id: int
    movement_type: str
    qty_change: int

    @property
    def key(self) -> tuple[int, int]:
        return (self.base_id, self.equipment_type_id)


def get_balance(
    base_id: int,
    equipment_type_id: Optional[int] = None,
    *,
    movement_types: Optional[Sequence[str]] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    before: Optional[datetime] = None,
) -> int:
    """
    Sum of qty_change for a base, optionally narrowed to one equipment type,
    a set of movement types and a time window.

    Negative results are legitimate for restricted sums (e.g. only
    TRANSFER_OUT); the stock invariant applies to the unrestricted sum.
    """
    query = db.session.query(func.coalesce(func.sum(LedgerEntry.qty_change), 0)).filter(
        LedgerEntry.base_id == base_id
    )
    if equipment_type_id is not None:
        query = query.filter(LedgerEntry.equipment_type_id == equipment_type_id)
    if movement_types:
        query = query.filter(LedgerEntry.movement_type.in_(list(movement_types)))
    if since is not None:
        query = query.filter(LedgerEntry.occurred_at >= since)
    if until is not None:
        query = query.filter(LedgerEntry.occurred_at <= until)
    if before is not None:
        query = query.filter(LedgerEntry.occurred_at < before)
    return int(query.scalar() or 0)


def _position_update(base_id: int, equipment_type_id: int, delta: int):
    return (
        update(StockPosition)
        .where(
            StockPosition.base_id == base_id,
            StockPosition.equipment_type_id == equipment_type_id,
        )
        .values(version=StockPosition.version + 1, on_hand=StockPosition.on_hand + delta)
        .execution_options(synchronize_session=False)
    )


def _bump_position(base_id: int, equipment_type_id: int, delta: int = 0) -> None:
    stmt = _position_update(base_id, equipment_type_id, delta)
    if db.session.execute(stmt).rowcount:
        return

    # First movement for this key: create the accumulator, tolerating a
    # concurrent creator, then take the lock through the same UPDATE.
    try:
        with db.session.begin_nested():
            db.session.add(StockPosition(base_id=base_id, equipment_type_id=equipment_type_id, on_hand=0, version=1))
    except IntegrityError:
        pass
    db.session.execute(stmt)


def lock_positions(keys: Iterable[tuple[int, int]]) -> None:
    """
    Serialize writers per (base_id, equipment_type_id).

    Keys are locked in sorted order so that two commands touching
    overlapping key sets cannot deadlock.
    """
    for base_id, equipment_type_id in sorted(set(keys)):
        _bump_position(base_id, equipment_type_id)


def require_available(base_id: int, equipment_type_id: int, required: int) -> int:
    """
    Raise InsufficientStockError unless the current balance covers ``required``.

    Only meaningful after lock_positions() for the same key.
    """
    available = get_balance(base_id, equipment_type_id)
    if required > available:
        raise InsufficientStockError(
            base_id=base_id,
            equipment_type_id=equipment_type_id,
            required=required,
            available=available,
        )
    return available


def _validate_posting(posting: LedgerPosting) -> None:
    if posting.movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Unknown movement type {posting.movement_type!r}")
    if posting.qty_change == 0:
        raise ValueError("Ledger postings must change quantity")
    inbound = posting.movement_type in INBOUND_MOVEMENTS
    if inbound != (posting.qty_change > 0):
        raise ValueError(f"{posting.movement_type} has the wrong sign: {posting.qty_change}")


def post_entries(
    postings: Sequence[LedgerPosting],
    *,
    ref_type: str,
    ref_id: int,
    occurred_at: datetime,
    actor_id: Optional[int] = None,
) -> list[LedgerEntry]:
    """
    Append ledger rows for one causing event, inside the caller's transaction.

    - Replaying the same (ref, movement, base, type) raises DuplicatePostingError.
    - Position accumulators are bumped in the same transaction.
    - Any touched key that ends below zero aborts with InsufficientStockError.

    Never commits.
    """
    for posting in postings:
        _validate_posting(posting)

    existing = (
        db.session.query(LedgerEntry.id)
        .filter(
            LedgerEntry.ref_type == ref_type,
            LedgerEntry.ref_id == ref_id,
            LedgerEntry.movement_type.in_({p.movement_type for p in postings}),
        )
        .first()
    )
    if existing is not None:
        raise DuplicatePostingError(
            f"Ledger already holds postings for {ref_type} {ref_id}",
            detail={"ref_type": ref_type, "ref_id": ref_id},
        )

    entries = [
        LedgerEntry(
            base_id=p.base_id,
            equipment_type_id=p.equipment_type_id,
            movement_type=p.movement_type,
            qty_change=p.qty_change,
            ref_type=ref_type,
            ref_id=ref_id,
            occurred_at=occurred_at,
            created_by_user_id=actor_id,
        )
        for p in postings
    ]
    db.session.add_all(entries)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise DuplicatePostingError(
            f"Ledger already holds postings for {ref_type} {ref_id}",
            detail={"ref_type": ref_type, "ref_id": ref_id},
        ) from exc

    deltas: dict[tuple[int, int], int] = {}
    for p in postings:
        deltas[p.key] = deltas.get(p.key, 0) + p.qty_change

    for key in sorted(deltas):
        _bump_position(key[0], key[1], deltas[key])

    for (base_id, equipment_type_id), delta in sorted(deltas.items()):
        if delta >= 0:
            continue
        balance = get_balance(base_id, equipment_type_id)
        if balance < 0:
            raise InsufficientStockError(
                base_id=base_id,
                equipment_type_id=equipment_type_id,
                required=-delta,
                available=balance - delta,
            )

    return entries


def list_entries(
    *,
    scope,
    base_id: Optional[int] = None,
    equipment_type_id: Optional[int] = None,
    movement_type: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    limit: int = 20,
    offset: int = 0,
) -> list[LedgerEntry]:
    if movement_type is not None and movement_type not in MOVEMENT_TYPES:
        raise ValidationError(
            f"movementType must be one of {', '.join(MOVEMENT_TYPES)}",
            field="movementType",
        )

    query = restrict_to_scope(db.session.query(LedgerEntry), scope, LedgerEntry.base_id, base_id=base_id)
    if equipment_type_id is not None:
        query = query.filter(LedgerEntry.equipment_type_id == equipment_type_id)
    if movement_type is not None:
        query = query.filter(LedgerEntry.movement_type == movement_type)
    if since is not None:
        query = query.filter(LedgerEntry.occurred_at >= since)
    if until is not None:
        query = query.filter(LedgerEntry.occurred_at <= until)
    return (
        query.order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def verify_positions() -> list[dict]:
    """
    Compare every stock position against the ledger sum.

    Returns one dict per disagreeing key (including ledger keys that have no
    position row). An empty list means the accumulators are consistent.
    """
    sums = {
        (row.base_id, row.equipment_type_id): int(row.total)
        for row in db.session.query(
            LedgerEntry.base_id,
            LedgerEntry.equipment_type_id,
            func.sum(LedgerEntry.qty_change).label("total"),
        )
        .group_by(LedgerEntry.base_id, LedgerEntry.equipment_type_id)
        .all()
    }
    positions = {
        (p.base_id, p.equipment_type_id): p.on_hand
        for p in db.session.query(StockPosition).all()
    }

    mismatches = []
    for key in sorted(set(sums) | set(positions)):
        ledger_sum = sums.get(key, 0)
        on_hand = positions.get(key)
        if on_hand is None or on_hand != ledger_sum or ledger_sum < 0:
            mismatches.append(
                {
                    "base_id": key[0],
                    "equipment_type_id": key[1],
                    "ledger_balance": ledger_sum,
                    "position_on_hand": on_hand,
                }
            )
    return mismatches


def balance_for(actor, *, base_id, equipment_type_id=None, as_of: Optional[datetime] = None) -> dict:
    """On-hand balance for a base the caller can see, optionally as of a time (inclusive)."""
    if base_id is None:
        raise ValidationError("baseId is required", field="baseId")
    actor.resolve_scope().require(base_id)
    return {
        "base_id": base_id,
        "equipment_type_id": equipment_type_id,
        "as_of": to_utc_z(as_of) if as_of else None,
        "balance": get_balance(base_id, equipment_type_id, until=as_of),
    }
