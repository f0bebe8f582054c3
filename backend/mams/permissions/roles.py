"""
Role variants.

Each stored role string maps to one Actor subclass. A variant answers two
questions for the services: which bases the caller may touch
(``resolve_scope``) and which operations the role may perform at all
(``can_*`` predicates). Scope membership is checked separately by the
service for the base the operation targets.

To add a role, subclass Actor and decorate it with @register_role.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Type

from ..errors import AuthorizationError
from .scope import AccessScope

ROLE_ADMIN = "ADMIN"
ROLE_BASE_COMMANDER = "BASE_COMMANDER"
ROLE_LOGISTICS_OFFICER = "LOGISTICS_OFFICER"

ROLE_VARIANTS: Dict[str, Type["Actor"]] = {}


def register_role(role: str) -> Callable[[Type["Actor"]], Type["Actor"]]:
    def decorator(cls: Type["Actor"]) -> Type["Actor"]:
        cls.role = role
        ROLE_VARIANTS[role] = cls
        return cls
    return decorator


@dataclass(frozen=True)
class Actor:
    """
    An authenticated caller.

    The base class denies everything and resolves to an empty scope, so an
    unknown role string fails closed.
    """

    user_id: Optional[int]
    base_id: Optional[int] = None
    granted_base_ids: FrozenSet[int] = frozenset()

    role = "NONE"

    def resolve_scope(self) -> AccessScope:
        return AccessScope.empty()

    @property
    def scope(self) -> AccessScope:
        return self.resolve_scope()

    def can_record_purchase(self) -> bool:
        return False

    def can_create_transfer(self) -> bool:
        return False

    def can_approve_transfer(self, transfer) -> bool:
        return False

    def can_dispatch_transfer(self) -> bool:
        return False

    def can_receive_transfer(self, transfer) -> bool:
        return False

    def can_create_assignment(self) -> bool:
        return False

    def can_create_expenditure(self) -> bool:
        return False

    def can_manage_master_data(self) -> bool:
        return False

    def can_view_audit_log(self) -> bool:
        return False

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "role": self.role,
            "base_id": self.base_id,
            "scope": self.resolve_scope().to_dict(),
        }


class NoAccess(Actor):
    """Unknown or retired role."""


@register_role(ROLE_ADMIN)
class Admin(Actor):
    def resolve_scope(self) -> AccessScope:
        return AccessScope.all_bases()

    def can_record_purchase(self) -> bool:
        return True

    def can_create_transfer(self) -> bool:
        return True

    def can_approve_transfer(self, transfer) -> bool:
        return True

    def can_dispatch_transfer(self) -> bool:
        return True

    def can_receive_transfer(self, transfer) -> bool:
        return True

    def can_create_assignment(self) -> bool:
        return True

    def can_create_expenditure(self) -> bool:
        return True

    def can_manage_master_data(self) -> bool:
        return True

    def can_view_audit_log(self) -> bool:
        return True


@register_role(ROLE_BASE_COMMANDER)
class BaseCommander(Actor):
    """Bound to exactly one base. An unbound commander sees nothing."""

    def resolve_scope(self) -> AccessScope:
        if self.base_id is None:
            return AccessScope.empty()
        return AccessScope.of([self.base_id])

    def can_record_purchase(self) -> bool:
        return True

    def can_approve_transfer(self, transfer) -> bool:
        return self.base_id is not None and transfer.from_base_id == self.base_id

    def can_receive_transfer(self, transfer) -> bool:
        return self.base_id is not None and transfer.to_base_id == self.base_id

    def can_create_assignment(self) -> bool:
        return True

    def can_create_expenditure(self) -> bool:
        return True


@register_role(ROLE_LOGISTICS_OFFICER)
class LogisticsOfficer(Actor):
    """Scope comes from explicit grants, falling back to the bound base."""

    def resolve_scope(self) -> AccessScope:
        if self.granted_base_ids:
            return AccessScope.of(self.granted_base_ids)
        if self.base_id is not None:
            return AccessScope.of([self.base_id])
        return AccessScope.empty()

    def can_record_purchase(self) -> bool:
        return True

    def can_create_transfer(self) -> bool:
        return True

    def can_dispatch_transfer(self) -> bool:
        return True


ROLES = tuple(ROLE_VARIANTS)


def is_known_role(role: str | None) -> bool:
    return role in ROLE_VARIANTS


def accepts_grants(role: str | None) -> bool:
    """Commanders are bound to their own base; only other roles take grants."""
    return role in ROLE_VARIANTS and role != ROLE_BASE_COMMANDER


def actor_for(
    role: str | None,
    *,
    user_id: Optional[int],
    base_id: Optional[int] = None,
    granted_base_ids: Iterable[int] = (),
) -> Actor:
    cls = ROLE_VARIANTS.get(role or "", NoAccess)
    return cls(user_id=user_id, base_id=base_id, granted_base_ids=frozenset(granted_base_ids))


def require(allowed: bool, action: str) -> None:
    """Raise AuthorizationError when a role predicate denies ``action``."""
    if not allowed:
        raise AuthorizationError(f"Your role may not {action}", detail={"action": action})
