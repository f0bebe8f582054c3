# Overview: Transaction boundary and retry helpers shared by the command services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import DomainError, StoreError
from ..extensions import db

# "database is locked" / deadlocks, and transfer version_id conflicts
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call ``func`` until it stops failing with a retryable error.

    The session is rolled back between attempts, so ``func`` must reload
    whatever it reads. Backoff doubles each attempt; the last failure is
    re-raised.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS:
            db.session.rollback()
            if attempt == attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run ``func`` and commit, as one all-or-nothing unit.

    - DomainError: rolled back and re-raised unchanged
    - lock/stale-version conflicts: rolled back and retried, StoreError once exhausted
    - any other SQLAlchemy failure: rolled back, surfaced as an opaque StoreError
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS:
            raise
        except DomainError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreError() from exc
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
    except RETRYABLE_ERRORS as exc:
        raise StoreError() from exc
