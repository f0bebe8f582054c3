# Overview: Flask API routes for ledger inspection; parses input and returns JSON responses.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import ledger_service
from ..validation import int_arg, pagination_args, window_arg

"""
Time semantics:
- API accepts ISO-8601 datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- from/to and as_of filtering is inclusive.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("")
@require_auth
def list_ledger_entries_route():
    """Query params: baseId, equipmentTypeId, movementType, from, to, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        entries = ledger_service.list_entries(
            scope=g.actor.resolve_scope(),
            base_id=int_arg(request.args, "baseId"),
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            movement_type=request.args.get("movementType") or None,
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [entry.to_dict() for entry in entries],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list ledger entries")


@ledger_bp.get("/balance")
@require_auth
def balance_route():
    """Query params: baseId (required), equipmentTypeId, asOf."""
    try:
        result = ledger_service.balance_for(
            g.actor,
            base_id=int_arg(request.args, "baseId"),
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            as_of=window_arg(request.args, "asOf", end=True),
        )
        return jsonify(result), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to compute balance")
