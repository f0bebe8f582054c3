# Overview: Typed domain errors with stable codes, shared by services and routes.

"""
MAMS error taxonomy.

Every failure a caller can observe is one of these classes. Each carries a
stable machine-readable ``code``, the HTTP status the API maps it to, a human
message and optional structured ``detail``. Nothing here ever carries a
stack trace or backing-store message to the caller.
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for errors that are safe to show to API callers."""

    code = "error"
    status_code = 500

    def __init__(self, message: str, *, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body


class ValidationError(DomainError):
    """Malformed or missing input. User-correctable, raised before any write."""

    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, *, field: str | None = None, detail: dict[str, Any] | None = None):
        super().__init__(message, detail=detail)
        self.field = field

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.field is not None:
            body["field"] = self.field
        return body


class AuthorizationError(DomainError):
    """Role or base-scope denial."""

    code = "forbidden"
    status_code = 403


class NotFoundError(DomainError):
    """Referenced entity is absent."""

    code = "not_found"
    status_code = 404


class ConflictError(DomainError):
    """Uniqueness clash on master data (duplicate base code, email, ...)."""

    code = "conflict"
    status_code = 409


class StateConflictError(DomainError):
    """Request is well-formed but the current state does not permit it."""

    code = "state_conflict"
    status_code = 400


class InvalidTransitionError(StateConflictError):
    code = "invalid_transition"

    def __init__(self, transfer_id: int, current: str, target: str):
        super().__init__(
            f"Transfer {transfer_id} cannot move from {current} to {target}",
            detail={"transfer_id": transfer_id, "current_status": current, "target_status": target},
        )


class InsufficientStockError(StateConflictError):
    code = "insufficient_stock"

    def __init__(self, *, base_id: int, equipment_type_id: int, required: int, available: int):
        super().__init__(
            "Insufficient stock at base",
            detail={
                "base_id": base_id,
                "equipment_type_id": equipment_type_id,
                "required": required,
                "available": available,
            },
        )


class ExceedsRemainingError(StateConflictError):
    code = "exceeds_remaining"

    def __init__(self, *, equipment_type_id: int, assigned: int, already_expended: int, requested: int):
        super().__init__(
            "Expenditure exceeds remaining assigned quantity",
            detail={
                "equipment_type_id": equipment_type_id,
                "assigned": assigned,
                "already_expended": already_expended,
                "remaining": assigned - already_expended,
                "requested": requested,
            },
        )


class DuplicatePostingError(StateConflictError):
    code = "duplicate_posting"


class StoreError(DomainError):
    """Persistence failure. Deliberately opaque."""

    code = "store_error"
    status_code = 500

    def __init__(self, message: str = "The operation could not be completed"):
        super().__init__(message)


class AuditSinkError(DomainError):
    """Audit write failed. Logged by the sink, never raised to callers."""

    code = "audit_sink_error"
