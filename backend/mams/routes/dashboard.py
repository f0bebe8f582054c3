# Overview: Flask API routes for dashboard rollups.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import dashboard_service
from ..validation import int_arg, window_arg

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


def _window_params() -> dict:
    return {
        "base_id": int_arg(request.args, "baseId"),
        "equipment_type_id": int_arg(request.args, "equipmentTypeId"),
        "since": window_arg(request.args, "from"),
        "until": window_arg(request.args, "to", end=True),
    }


@dashboard_bp.get("/summary")
@require_auth
def summary_route():
    """
    Query params: baseId (required), equipmentTypeId, from (required), to (required).

    A date-only ``to`` covers the whole day.
    """
    try:
        return jsonify({"summary": dashboard_service.summary(g.actor, **_window_params())}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build dashboard summary")


@dashboard_bp.get("/net-movement")
@require_auth
def net_movement_route():
    """Purchases, transfer in/out and their net for the window."""
    try:
        return jsonify({"net_movement": dashboard_service.net_movement(g.actor, **_window_params())}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to build net movement")
