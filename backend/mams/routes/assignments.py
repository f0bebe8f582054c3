# Overview: Flask API routes for assignments.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import assignment_service
from ..validation import int_arg, json_body, pagination_args, window_arg

assignments_bp = Blueprint("assignments", __name__, url_prefix="/api/assignments")


@assignments_bp.post("")
@require_auth
def create_assignment_route():
    """
    Request body:
    {
        "base_id": int,
        "assignee_name": str,
        "assignee_ref": str (optional),
        "assigned_at": ISO-8601 (optional),
        "notes": str (optional),
        "items": [{"equipment_type_id": int, "quantity": int}, ...]
    }

    Returns:
        201: {"assignment": {...}}
        400: validation error or insufficient stock
        403: role or base scope
    """
    try:
        data = json_body()
        assignment = assignment_service.create_assignment(
            g.actor,
            base_id=data.get("base_id"),
            assignee_name=data.get("assignee_name"),
            assignee_ref=data.get("assignee_ref"),
            assigned_at=data.get("assigned_at"),
            notes=data.get("notes"),
            items=data.get("items"),
        )
        return jsonify({"assignment": assignment.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create assignment")


@assignments_bp.get("/<int:assignment_id>")
@require_auth
def get_assignment_route(assignment_id: int):
    """Assignment with per-line assigned / expended / remaining."""
    try:
        assignment = assignment_service.get_assignment(g.actor, assignment_id)
        data = assignment.to_dict()
        data["lines"] = assignment_service.describe_remaining(assignment)
        return jsonify({"assignment": data}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error(f"Failed to load assignment {assignment_id}")


@assignments_bp.get("")
@require_auth
def list_assignments_route():
    """Query params: baseId, equipmentTypeId, from, to, limit, offset."""
    try:
        limit, offset = pagination_args(request.args)
        assignments = assignment_service.list_assignments(
            g.actor,
            base_id=int_arg(request.args, "baseId"),
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [a.to_dict() for a in assignments],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list assignments")
