# Overview: Service-layer operations for session tokens.

"""
Session Token Management

- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage; the plaintext only goes to the client
- Absolute timeout (SESSION_ABSOLUTE_TIMEOUT_HOURS) and idle timeout
  (SESSION_IDLE_TIMEOUT_HOURS)
- Revocable on logout
"""

import hashlib
import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..time_utils import utcnow


def _absolute_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", 24))


def _idle_timeout() -> timedelta:
    return timedelta(hours=current_app.config.get("SESSION_IDLE_TIMEOUT_HOURS", 2))


def generate_token() -> str:
    """64-character hex string (32 bytes of entropy)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens are high-entropy, SHA-256 is sufficient
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Create a new session for the user.

    Returns (session_record, plaintext_token).
    """
    now = utcnow()
    plaintext_token = generate_token()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _absolute_timeout(),
    )
    db.session.add(session)
    db.session.commit()
    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Return the session's user, or None if the token is unknown, expired,
    idle too long, revoked, or belongs to a deactivated account.

    Updates last_used_at on success.
    """
    now = utcnow()
    session = db.session.query(SessionToken).filter(
        SessionToken.token_hash == hash_token(token),
        SessionToken.revoked_at.is_(None),
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_timeout():
        session.revoked_at = now
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        session.revoked_at = now
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str) -> bool:
    """Returns True if an active session was revoked."""
    session = db.session.query(SessionToken).filter(
        SessionToken.token_hash == hash_token(token),
        SessionToken.revoked_at.is_(None),
    ).first()

    if not session:
        return False

    session.revoked_at = utcnow()
    db.session.commit()
    return True
