# Overview: Flask API routes for purchases.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import purchase_service
from ..validation import int_arg, json_body, pagination_args, window_arg

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("")
@require_auth
def create_purchase_route():
    """
    Record a purchase. Posts one PURCHASE ledger row.

    Request body:
    {
        "base_id": int,
        "equipment_type_id": int,
        "quantity": int (> 0),
        "purchased_at": ISO-8601 (optional, default now),
        "vendor": str (optional),
        "reference": str (optional)
    }

    Returns:
        201: {"purchase": {...}}
        400: validation error
        403: role or base scope
        404: unknown base or equipment type
    """
    try:
        data = json_body()
        purchase = purchase_service.create_purchase(
            g.actor,
            base_id=data.get("base_id"),
            equipment_type_id=data.get("equipment_type_id"),
            quantity=data.get("quantity"),
            purchased_at=data.get("purchased_at"),
            vendor=data.get("vendor"),
            reference=data.get("reference"),
        )
        return jsonify({"purchase": purchase.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create purchase")


@purchases_bp.get("")
@require_auth
def list_purchases_route():
    """
    Query params: baseId, equipmentTypeId, from, to, limit, offset.
    Newest first.
    """
    try:
        limit, offset = pagination_args(request.args)
        purchases = purchase_service.list_purchases(
            g.actor,
            base_id=int_arg(request.args, "baseId"),
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [p.to_dict() for p in purchases],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list purchases")
