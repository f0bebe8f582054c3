# Overview: Role variants and access scope value object.

from .scope import AccessScope
from .roles import (
    ROLE_ADMIN,
    ROLE_BASE_COMMANDER,
    ROLE_LOGISTICS_OFFICER,
    ROLES,
    Actor,
    Admin,
    BaseCommander,
    LogisticsOfficer,
    NoAccess,
    accepts_grants,
    actor_for,
    is_known_role,
    require,
)

__all__ = [
    "AccessScope",
    "ROLE_ADMIN",
    "ROLE_BASE_COMMANDER",
    "ROLE_LOGISTICS_OFFICER",
    "ROLES",
    "Actor",
    "Admin",
    "BaseCommander",
    "LogisticsOfficer",
    "NoAccess",
    "accepts_grants",
    "actor_for",
    "is_known_role",
    "require",
]
