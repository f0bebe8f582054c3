"""Audit sink: inline and queued writes, failures never reach callers."""

import logging

import pytest

from mams import create_app
from mams.errors import AuditSinkError
from mams.extensions import db
from mams.models import AuditLog, Purchase
from mams.services import audit_service, purchase_service
from mams.services.audit_service import AuditSink


def test_sync_write(app, db_session, admin_user, base_alpha):
    audit_service.record(
        audit_service.ACTION_BASE_CREATED,
        actor_id=admin_user.id,
        base_id=base_alpha.id,
        entity_type="base",
        entity_id=base_alpha.id,
        metadata={"code": "ALPHA"},
    )

    log = db_session.query(AuditLog).one()
    assert log.action == audit_service.ACTION_BASE_CREATED
    assert log.to_dict()["metadata"] == {"code": "ALPHA"}


def test_unserializable_metadata_is_logged_and_dropped(app, db_session, caplog):
    sink = app.extensions["audit_sink"]

    with caplog.at_level(logging.ERROR):
        sink.record("PURCHASE_CREATED", entity_type="purchase", entity_id=1, metadata={"bad": object()})

    assert db_session.query(AuditLog).count() == 0
    assert "Audit write failed" in caplog.text


def test_sink_failure_does_not_undo_business_write(monkeypatch, db_session, admin, base_alpha, rifle):
    def _broken(self, entry):
        raise AuditSinkError("sink offline")

    monkeypatch.setattr(AuditSink, "_write", _broken)

    purchase = purchase_service.create_purchase(admin, base_id=base_alpha.id, equipment_type_id=rifle.id, quantity=3)

    assert db_session.get(Purchase, purchase.id) is not None
    assert db_session.query(AuditLog).count() == 0


def test_listing_requires_admin(db_session, commander_alpha):
    from mams.errors import AuthorizationError
    from mams.services import access_service

    with pytest.raises(AuthorizationError):
        audit_service.list_audit_logs(access_service.load_actor(commander_alpha))


class TestQueuedSink:

    @pytest.fixture
    def async_app(self, tmp_path):
        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'audit.db'}",
            'AUDIT_SYNC': False,
        })
        with app.app_context():
            db.create_all()
        yield app
        app.extensions["audit_sink"].flush(timeout=5)
        with app.app_context():
            db.engine.dispose()

    def test_worker_writes_after_flush(self, async_app):
        sink = async_app.extensions["audit_sink"]
        with async_app.app_context():
            for entity_id in (1, 2, 3):
                audit_service.record(
                    audit_service.ACTION_PURCHASE_CREATED, entity_type="purchase", entity_id=entity_id
                )

        assert sink.flush(timeout=5)

        with async_app.app_context():
            assert sorted(log.entity_id for log in db.session.query(AuditLog).all()) == [1, 2, 3]

    def test_health_reports_queue(self, async_app):
        health = async_app.extensions["audit_sink"].health()
        assert health["mode"] == "async"
        assert health["status"] == "healthy"
        assert health["queue_depth"] == 0
