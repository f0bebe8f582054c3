# Overview: Request decorators and error response helpers for API routes.

from functools import wraps

from flask import current_app, g, jsonify, request

from .errors import AuthorizationError, DomainError, StoreError
from .extensions import db
from .services import access_service, session_service


def _unauthenticated(message: str):
    return jsonify({"error": {"code": "unauthenticated", "message": message}}), 401


def error_response(exc: DomainError):
    """
    Serialize a domain error as {"error": {code, message, detail?, field?}}.

    Rejections are logged without stack traces: authorization denials at
    WARNING, everything else at INFO.
    """
    log = current_app.logger.warning if isinstance(exc, AuthorizationError) else current_app.logger.info
    log("%s %s rejected: %s (%s)", request.method, request.path, exc.code, exc.message)
    return jsonify({"error": exc.to_dict()}), exc.status_code


def internal_error(message: str):
    """Log the active exception and return an opaque 500."""
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": StoreError().to_dict()}), 500


def require_auth(f):
    """
    Require a valid bearer token.

    Sets:
    - g.current_user: the authenticated User
    - g.actor: the caller's role variant, with base grants attached
    - g.session_token: the plaintext token (for logout)

    Returns 401 when the Authorization header is missing or the token is
    invalid, expired, idle or revoked.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return _unauthenticated("Authentication required")

        token = auth_header.split(" ", 1)[1].strip()
        user = session_service.validate_session(token)
        if not user:
            return _unauthenticated("Invalid or expired token")

        g.current_user = user
        g.actor = access_service.load_actor(user)
        g.session_token = token

        return f(*args, **kwargs)

    return decorated_function
