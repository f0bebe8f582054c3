# Overview: Access scope resolution and base-access grants.

from __future__ import annotations

from sqlalchemy import false, or_

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Base, User, UserBaseAccess
from ..permissions import AccessScope, Actor, accepts_grants, actor_for
from .concurrency import run_in_transaction


def get_granted_base_ids(user_id: int) -> set[int]:
    rows = db.session.query(UserBaseAccess.base_id).filter_by(user_id=user_id).all()
    return {row[0] for row in rows}


def load_actor(user: User) -> Actor:
    """Build the role variant for a user, with their base grants attached."""
    granted = get_granted_base_ids(user.id) if accepts_grants(user.role) else set()
    return actor_for(user.role, user_id=user.id, base_id=user.base_id, granted_base_ids=granted)


def resolve_scope(user: User) -> AccessScope:
    return load_actor(user).resolve_scope()


def restrict_to_scope(query, scope: AccessScope, *columns, base_id: int | None = None):
    """
    Narrow ``query`` to rows whose base column(s) fall inside ``scope``.

    With several columns (transfers: from/to) a row matches when ANY of them
    does. An explicit base_id outside the scope raises AuthorizationError
    instead of silently returning nothing.
    """
    if base_id is not None:
        scope.require(base_id)
        return query.filter(or_(*[column == base_id for column in columns]))
    if scope.unrestricted:
        return query
    if scope.is_empty:
        return query.filter(false())
    ids = sorted(scope.base_ids)
    return query.filter(or_(*[column.in_(ids) for column in columns]))


def list_base_access(user_id: int) -> list[UserBaseAccess]:
    return (
        db.session.query(UserBaseAccess)
        .filter_by(user_id=user_id)
        .order_by(UserBaseAccess.base_id.asc())
        .all()
    )


def grant_base_access(*, user_id: int, base_id: int, granted_by_user_id: int | None = None) -> UserBaseAccess:
    def _op():
        user = db.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found", detail={"user_id": user_id})

        if not db.session.get(Base, base_id):
            raise NotFoundError("Base not found", detail={"base_id": base_id})

        if not accepts_grants(user.role):
            raise ValidationError(
                f"Role {user.role} cannot receive base access grants",
                field="user_id",
            )

        existing = db.session.query(UserBaseAccess).filter_by(user_id=user_id, base_id=base_id).first()
        if existing:
            return existing

        access = UserBaseAccess(
            user_id=user_id,
            base_id=base_id,
            granted_by_user_id=granted_by_user_id,
        )
        db.session.add(access)
        db.session.flush()
        return access

    return run_in_transaction(_op)


def revoke_base_access(*, user_id: int, base_id: int) -> bool:
    def _op():
        access = db.session.query(UserBaseAccess).filter_by(user_id=user_id, base_id=base_id).first()
        if not access:
            return False
        db.session.delete(access)
        return True

    return run_in_transaction(_op)
