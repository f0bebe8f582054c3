# Overview: Flask API routes for bases and equipment types.

from flask import Blueprint, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import master_data_service
from ..validation import json_body

bases_bp = Blueprint("bases", __name__, url_prefix="/api/bases")
equipment_bp = Blueprint("equipment_types", __name__, url_prefix="/api/equipment-types")


@bases_bp.get("")
@require_auth
def list_bases_route():
    """Bases inside the caller's scope."""
    try:
        bases = master_data_service.list_bases(g.actor)
        return jsonify({"items": [b.to_dict() for b in bases]}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list bases")


@bases_bp.post("")
@require_auth
def create_base_route():
    """
    Request body:
    {
        "name": str,
        "code": str (unique, stored upper-case),
        "location": str (optional)
    }
    """
    try:
        data = json_body()
        base = master_data_service.create_base(
            g.actor,
            name=data.get("name"),
            code=data.get("code"),
            location=data.get("location"),
        )
        return jsonify({"base": base.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create base")


@equipment_bp.get("")
@require_auth
def list_equipment_types_route():
    try:
        equipment_types = master_data_service.list_equipment_types(category=request.args.get("category"))
        return jsonify({"items": [et.to_dict() for et in equipment_types]}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list equipment types")


@equipment_bp.post("")
@require_auth
def create_equipment_type_route():
    """
    Request body:
    {
        "name": str,
        "category": str (optional),
        "unit": str (optional, default "unit"),
        "is_serialized": bool (optional)
    }
    """
    try:
        data = json_body()
        equipment_type = master_data_service.create_equipment_type(
            g.actor,
            name=data.get("name"),
            category=data.get("category"),
            unit=data.get("unit"),
            is_serialized=data.get("is_serialized", False),
        )
        return jsonify({"equipment_type": equipment_type.to_dict()}), 201
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create equipment type")
