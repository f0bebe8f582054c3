# backend/mams/routes/transfers.py
"""
Inter-base transfer API routes.
"""
from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import transfer_service
from ..validation import int_arg, json_body, pagination_args, window_arg

transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_auth
def create_transfer():
    """
    Create a DRAFT transfer.

    Request body:
    {
        "from_base_id": int,
        "to_base_id": int,
        "items": [{"equipment_type_id": int, "quantity": int}, ...],
        "notes": str (optional)
    }

    Returns:
        201: Transfer created
        400: Invalid request
        403: Forbidden
    """
    try:
        data = json_body()
        transfer = transfer_service.create_transfer(
            g.actor,
            from_base_id=data.get("from_base_id"),
            to_base_id=data.get("to_base_id"),
            items=data.get("items"),
            notes=data.get("notes"),
        )
        return jsonify({"transfer": transfer.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create transfer")


@transfers_bp.route("/<int:transfer_id>/approve", methods=["POST"])
@require_auth
def approve_transfer(transfer_id: int):
    """DRAFT -> APPROVED."""
    try:
        transfer = transfer_service.approve_transfer(g.actor, transfer_id)
        return jsonify({"transfer": transfer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error(f"Failed to approve transfer {transfer_id}")


@transfers_bp.route("/<int:transfer_id>/dispatch", methods=["POST"])
@require_auth
def dispatch_transfer(transfer_id: int):
    """APPROVED -> DISPATCHED."""
    try:
        transfer = transfer_service.dispatch_transfer(g.actor, transfer_id)
        return jsonify({"transfer": transfer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error(f"Failed to dispatch transfer {transfer_id}")


@transfers_bp.route("/<int:transfer_id>/receive", methods=["POST"])
@require_auth
def receive_transfer(transfer_id: int):
    """
    DISPATCHED -> RECEIVED. Posts TRANSFER_OUT and TRANSFER_IN for every line.

    Returns:
        200: Transfer received
        400: Wrong state or insufficient stock at the from-base
        403: Not admin or to-base commander
        404: Transfer not found
    """
    try:
        transfer = transfer_service.receive_transfer(g.actor, transfer_id)
        return jsonify({"transfer": transfer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error(f"Failed to receive transfer {transfer_id}")


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
@require_auth
def get_transfer(transfer_id: int):
    try:
        transfer = transfer_service.get_transfer(g.actor, transfer_id)
        return jsonify({"transfer": transfer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error(f"Failed to load transfer {transfer_id}")


@transfers_bp.route("", methods=["GET"])
@require_auth
def list_transfers():
    """
    Query params: baseId (either side), fromBaseId, toBaseId, status,
    equipmentTypeId, from, to, limit, offset.
    """
    try:
        limit, offset = pagination_args(request.args)
        transfers = transfer_service.list_transfers(
            g.actor,
            base_id=int_arg(request.args, "baseId"),
            from_base_id=int_arg(request.args, "fromBaseId"),
            to_base_id=int_arg(request.args, "toBaseId"),
            status=request.args.get("status") or None,
            equipment_type_id=int_arg(request.args, "equipmentTypeId"),
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [t.to_dict() for t in transfers],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list transfers")
