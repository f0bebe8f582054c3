# Overview: Service-layer operations for auth; password hashing and user accounts.

"""
Authentication Service

Every action must be attributable. Passwords are hashed with bcrypt and
must meet a minimum strength. Session tokens are handled separately (see
session_service.py).
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Base, User
from ..permissions import ROLE_BASE_COMMANDER, ROLES, is_known_role
from ..time_utils import utcnow
from ..validation import coerce_text
from .concurrency import run_in_transaction


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""

    def __init__(self, message: str):
        super().__init__(message, field="password")


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """Hash with bcrypt. Cost comes from BCRYPT_ROUNDS (12 unless overridden)."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """bcrypt.checkpw is timing-safe. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(email: str, password: str, role: str, base_id: int | None = None) -> User:
    """
    Create a user with a bcrypt password hash.

    Commanders must be bound to a base; other roles may be.

    Raises:
        ValidationError: bad email, weak password, unknown role, unbound commander
        NotFoundError: base does not exist
        ConflictError: email already registered
    """
    email = coerce_text(email, "email", max_length=255, required=True).lower()
    if "@" not in email:
        raise ValidationError("email must be an email address", field="email")
    if not is_known_role(role):
        raise ValidationError(f"role must be one of {', '.join(ROLES)}", field="role")
    if role == ROLE_BASE_COMMANDER and base_id is None:
        raise ValidationError("A base commander must be bound to a base", field="base_id")

    password_hash = hash_password(password)

    def _op():
        if base_id is not None and not db.session.get(Base, base_id):
            raise NotFoundError("Base not found", detail={"base_id": base_id})
        if db.session.query(User.id).filter_by(email=email).first():
            raise ConflictError("Email already registered", detail={"email": email})

        user = User(email=email, password_hash=password_hash, role=role, base_id=base_id)
        db.session.add(user)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Email already registered", detail={"email": email}) from exc
        return user

    return run_in_transaction(_op)


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the User if credentials are valid and the account is active,
    None otherwise. Updates last_login_at on success.
    """
    if not email or not password:
        return None

    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
