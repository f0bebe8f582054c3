# Overview: Flask API routes for the audit log (admin only).

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import error_response, internal_error, require_auth
from ..errors import DomainError
from ..services import audit_service
from ..validation import int_arg, pagination_args, window_arg

audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit-logs")


@audit_bp.get("")
@require_auth
def list_audit_logs_route():
    """Query params: from, to, actorId, action, baseId, limit (default 50, max 200), offset."""
    try:
        limit, offset = pagination_args(
            request.args,
            default_limit=current_app.config.get("AUDIT_DEFAULT_LIMIT", 50),
            max_limit=current_app.config.get("AUDIT_MAX_LIMIT", 200),
        )
        logs = audit_service.list_audit_logs(
            g.actor,
            since=window_arg(request.args, "from"),
            until=window_arg(request.args, "to", end=True),
            actor_id=int_arg(request.args, "actorId"),
            action=request.args.get("action") or None,
            base_id=int_arg(request.args, "baseId"),
            limit=limit,
            offset=offset,
        )
        return jsonify({
            "items": [log.to_dict() for log in logs],
            "limit": limit,
            "offset": offset,
        }), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list audit logs")
