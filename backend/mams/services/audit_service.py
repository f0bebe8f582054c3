# Overview: Best-effort audit sink and audit log queries.

"""
Audit Sink

Audit records are written AFTER the business transaction has committed and
must never unwind or block it:

- record() hands the entry to a bounded in-process queue and returns
- a daemon worker drains the queue and writes audit_logs rows inside its own
  application context, so it never shares a session with a request
- every failure (queue full, DB error, unserializable metadata) is logged
  through app.logger and dropped

With AUDIT_SYNC the write happens inline (tests, CLI) under the same
log-and-drop policy.
"""
from __future__ import annotations

import queue
import threading
from datetime import datetime
from typing import Any, Optional

from flask import current_app

from ..errors import AuditSinkError
from ..extensions import db
from ..models import AuditLog
from ..permissions import require
from ..time_utils import utcnow

ACTION_PURCHASE_CREATED = "PURCHASE_CREATED"
ACTION_TRANSFER_CREATED = "TRANSFER_CREATED"
ACTION_TRANSFER_APPROVED = "TRANSFER_APPROVED"
ACTION_TRANSFER_DISPATCHED = "TRANSFER_DISPATCHED"
ACTION_TRANSFER_RECEIVED = "TRANSFER_RECEIVED"
ACTION_ASSIGNMENT_CREATED = "ASSIGNMENT_CREATED"
ACTION_EXPENDITURE_CREATED = "EXPENDITURE_CREATED"
ACTION_BASE_CREATED = "BASE_CREATED"
ACTION_EQUIPMENT_TYPE_CREATED = "EQUIPMENT_TYPE_CREATED"


class AuditSink:
    """Flask extension owning the audit queue and its worker thread."""

    def __init__(self, app=None):
        self.app = None
        self.sync = False
        self._queue: Optional[queue.Queue] = None
        self._worker: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app) -> None:
        self.app = app
        self.sync = bool(app.config.get("AUDIT_SYNC", False))
        self._queue = queue.Queue(maxsize=int(app.config.get("AUDIT_QUEUE_SIZE", 1000)))
        app.extensions["audit_sink"] = self

    def record(
        self,
        action: str,
        *,
        actor_id: Optional[int] = None,
        base_id: Optional[int] = None,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        entry = {
            "action": action,
            "actor_id": actor_id,
            "base_id": base_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "details": metadata,
            "created_at": utcnow(),
        }

        if self.sync:
            self._write_safely(entry)
            return

        self._ensure_worker()
        try:
            self._queue.put_nowait(entry)
        except queue.Full:
            self.app.logger.warning("Audit queue full, dropping %s for %s %s", action, entity_type, entity_id)

    def health(self) -> dict:
        """A full queue means records are being dropped: degraded, not down."""
        if self.sync:
            return {"status": "healthy", "mode": "sync"}
        depth = self._queue.qsize()
        status = "degraded" if self._queue.full() else "healthy"
        return {"status": status, "mode": "async", "queue_depth": depth}

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Block until queued entries are written. Returns False on timeout."""
        if self._queue is None or self._worker is None:
            return True
        done = threading.Event()

        def _wait():
            self._queue.join()
            done.set()

        threading.Thread(target=_wait, daemon=True).start()
        return done.wait(timeout)

    def _ensure_worker(self) -> None:
        with self._lock:
            if self._worker is not None and self._worker.is_alive():
                return
            self._worker = threading.Thread(target=self._run, name="mams-audit-sink", daemon=True)
            self._worker.start()

    def _run(self) -> None:
        while True:
            entry = self._queue.get()
            try:
                with self.app.app_context():
                    self._write_safely(entry)
            finally:
                self._queue.task_done()

    def _write_safely(self, entry: dict) -> None:
        try:
            self._write(entry)
        except AuditSinkError:
            self.app.logger.exception(
                "Audit write failed for %s %s %s",
                entry.get("action"),
                entry.get("entity_type"),
                entry.get("entity_id"),
            )

    def _write(self, entry: dict) -> None:
        try:
            db.session.add(AuditLog(**entry))
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            raise AuditSinkError("Audit write failed") from exc


def record(action: str, **kwargs) -> None:
    """Hand an audit entry to the application's sink."""
    sink = current_app.extensions.get("audit_sink")
    if sink is None:
        current_app.logger.warning("No audit sink registered, dropping %s", action)
        return
    sink.record(action, **kwargs)


def list_audit_logs(
    actor,
    *,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    actor_id: Optional[int] = None,
    action: Optional[str] = None,
    base_id: Optional[int] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[AuditLog]:
    require(actor.can_view_audit_log(), "view the audit log")

    query = db.session.query(AuditLog)
    if since is not None:
        query = query.filter(AuditLog.created_at >= since)
    if until is not None:
        query = query.filter(AuditLog.created_at <= until)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if base_id is not None:
        query = query.filter(AuditLog.base_id == base_id)
    return (
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )
