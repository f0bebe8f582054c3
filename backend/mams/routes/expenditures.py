# Overview: Flask API routes for expenditures.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import expenditure_service
from ..validation import int_arg, json_body, pagination_args, window_arg

expenditures_bp = Blueprint("expenditures", __name__, url_prefix="/api/expenditures")


@expenditures_bp.post("")
@require_auth
def create_expenditure_route():
    """
    Request body:
    {
        "base_id": int,
        "reason": str,
        "related_assignment_id": int (optional; consumes from the assignment),
        "expended_at": ISO-8601 (optional),
        "items": [{"equipment_type_id": int, "quantity": int}, ...]
    }

    Returns:
        201: {"expenditure": {...}}
        400: validation error, insufficient stock or exceeds remaining
        403: role or base scope
        404: unknown base, equipment type or assignment
    """
    try:
        data = json_body()
        expenditure = expenditure_service.create_expenditure(
            g.actor,
            base_id=data.get("base_id"),
            reason=data.get("reason"),
            related_assignment_id=data.get("related_assignment_id"),
            expended_at=data.get("expended_at"),
            items=data.get("items"),
        )
        return jsonify({"expenditure": expenditure.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create expenditure")


@expenditures_bp.get("")
@require_auth
def list_expenditures_route():
    """Query params: baseId, equipmentTypeId, assignmentId, from, to, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        expenditures = expenditure_service.list_expenditures(
            g.actor,
            base_id=int_arg(request.args, "baseId"),
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            related_assignment_id=int_arg(request.args, "assignmentId"),
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [x.to_dict() for x in expenditures],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list expenditures")
