# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/mams/routes/auth.py
"""
Authentication API routes.

Accounts are created by administrators through the CLI; there is no
self-registration endpoint.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..services import auth_service, session_service
from ..time_utils import to_utc_z

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email + password and create a session token.

    The token must be sent as ``Authorization: Bearer <token>``.
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return jsonify({
            "error": {"code": "validation_error", "message": "email and password required", "field": "email"}
        }), 400

    user = auth_service.authenticate(email, password)
    if not user:
        current_app.logger.warning("Failed login for %s", email)
        return jsonify({"error": {"code": "unauthenticated", "message": "Invalid credentials"}}), 401

    session, token = session_service.create_session(user.id)
    return jsonify({
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with resolved role and base scope."""
    return jsonify({
        "user": g.current_user.to_dict(),
        "actor": g.actor.to_dict(),
    }), 200
