"""Role variants, access scopes and base-access grants."""

from types import SimpleNamespace

import pytest

from mams.errors import AuthorizationError, NotFoundError, ValidationError
from mams.models import Purchase
from mams.permissions import (
    ROLE_ADMIN,
    ROLE_BASE_COMMANDER,
    ROLE_LOGISTICS_OFFICER,
    AccessScope,
    Admin,
    BaseCommander,
    LogisticsOfficer,
    NoAccess,
    actor_for,
)
from mams.services import access_service


def test_admin_scope_is_unrestricted():
    actor = actor_for(ROLE_ADMIN, user_id=1)
    scope = actor.resolve_scope()

    assert isinstance(actor, Admin)
    assert scope.unrestricted
    assert scope.allows(12345)


def test_commander_scope_is_home_base_only():
    actor = actor_for(ROLE_BASE_COMMANDER, user_id=2, base_id=7)
    scope = actor.resolve_scope()

    assert isinstance(actor, BaseCommander)
    assert scope.allows(7)
    assert not scope.allows(8)
    with pytest.raises(AuthorizationError) as exc_info:
        scope.require(8)
    assert exc_info.value.detail == {"base_id": 8}


def test_unbound_commander_sees_nothing():
    scope = actor_for(ROLE_BASE_COMMANDER, user_id=2).resolve_scope()
    assert scope.is_empty
    assert not scope.allows(1)


def test_logistics_scope_prefers_grants_over_home_base():
    actor = actor_for(ROLE_LOGISTICS_OFFICER, user_id=3, base_id=1, granted_base_ids=[4, 5])
    scope = actor.resolve_scope()

    assert isinstance(actor, LogisticsOfficer)
    assert scope.base_ids == frozenset({4, 5})
    assert not scope.allows(1)


def test_logistics_scope_falls_back_to_home_base():
    scope = actor_for(ROLE_LOGISTICS_OFFICER, user_id=3, base_id=1).resolve_scope()
    assert scope.base_ids == frozenset({1})

    assert actor_for(ROLE_LOGISTICS_OFFICER, user_id=3).resolve_scope().is_empty


def test_unknown_role_is_denied_everything():
    actor = actor_for("QUARTERMASTER", user_id=9, base_id=1)
    transfer = SimpleNamespace(from_base_id=1, to_base_id=2)

    assert isinstance(actor, NoAccess)
    assert actor.resolve_scope().is_empty
    assert not actor.can_record_purchase()
    assert not actor.can_create_transfer()
    assert not actor.can_approve_transfer(transfer)
    assert not actor.can_dispatch_transfer()
    assert not actor.can_receive_transfer(transfer)
    assert not actor.can_create_assignment()
    assert not actor.can_create_expenditure()
    assert not actor.can_manage_master_data()
    assert not actor.can_view_audit_log()


def test_commander_approves_outbound_and_receives_inbound():
    commander = actor_for(ROLE_BASE_COMMANDER, user_id=2, base_id=1)
    outbound = SimpleNamespace(from_base_id=1, to_base_id=2)
    inbound = SimpleNamespace(from_base_id=2, to_base_id=1)

    assert commander.can_approve_transfer(outbound)
    assert not commander.can_approve_transfer(inbound)
    assert commander.can_receive_transfer(inbound)
    assert not commander.can_receive_transfer(outbound)
    assert not commander.can_create_transfer()
    assert not commander.can_dispatch_transfer()


def test_logistics_cannot_approve_receive_or_assign():
    officer = actor_for(ROLE_LOGISTICS_OFFICER, user_id=3, granted_base_ids=[1, 2])
    transfer = SimpleNamespace(from_base_id=1, to_base_id=2)

    assert officer.can_create_transfer()
    assert officer.can_dispatch_transfer()
    assert not officer.can_approve_transfer(transfer)
    assert not officer.can_receive_transfer(transfer)
    assert not officer.can_create_assignment()
    assert not officer.can_create_expenditure()


def test_scope_to_dict():
    assert AccessScope.all_bases().to_dict() == {"unrestricted": True, "base_ids": []}
    assert AccessScope.of([3, 1]).to_dict() == {"unrestricted": False, "base_ids": [1, 3]}


class TestBaseAccessGrants:

    def test_load_actor_attaches_grants(self, logistics_user, base_alpha, base_bravo):
        actor = access_service.load_actor(logistics_user)
        assert actor.resolve_scope().base_ids == frozenset({base_alpha.id, base_bravo.id})

    def test_grant_is_idempotent(self, logistics_user, base_charlie):
        first = access_service.grant_base_access(user_id=logistics_user.id, base_id=base_charlie.id)
        second = access_service.grant_base_access(user_id=logistics_user.id, base_id=base_charlie.id)

        assert first.id == second.id
        assert base_charlie.id in access_service.get_granted_base_ids(logistics_user.id)

    def test_grant_to_commander_rejected(self, commander_alpha, base_bravo):
        with pytest.raises(ValidationError):
            access_service.grant_base_access(user_id=commander_alpha.id, base_id=base_bravo.id)

    def test_grant_unknown_base(self, logistics_user):
        with pytest.raises(NotFoundError):
            access_service.grant_base_access(user_id=logistics_user.id, base_id=99999)

    def test_revoke(self, logistics_user, base_bravo):
        assert access_service.revoke_base_access(user_id=logistics_user.id, base_id=base_bravo.id)
        assert not access_service.revoke_base_access(user_id=logistics_user.id, base_id=base_bravo.id)
        assert base_bravo.id not in access_service.get_granted_base_ids(logistics_user.id)

    def test_commander_grants_are_ignored(self, db_session, commander_alpha, base_alpha, base_bravo):
        from mams.models import UserBaseAccess

        # Rows written around the service still never widen a commander
        db_session.add(UserBaseAccess(user_id=commander_alpha.id, base_id=base_bravo.id))
        db_session.commit()

        actor = access_service.load_actor(commander_alpha)
        assert actor.resolve_scope().base_ids == frozenset({base_alpha.id})


class TestRestrictToScope:

    def test_explicit_base_outside_scope_is_forbidden(self, db_session, base_alpha, base_bravo):
        scope = AccessScope.of([base_alpha.id])
        with pytest.raises(AuthorizationError):
            access_service.restrict_to_scope(db_session.query(Purchase), scope, Purchase.base_id, base_id=base_bravo.id)

    def test_empty_scope_returns_nothing(self, db_session, stock, base_alpha, rifle):
        stock(base_alpha, rifle, 5)
        query = access_service.restrict_to_scope(db_session.query(Purchase), AccessScope.empty(), Purchase.base_id)
        assert query.all() == []

    def test_scope_filters_rows(self, db_session, stock, base_alpha, base_bravo, rifle):
        stock(base_alpha, rifle, 5)
        stock(base_bravo, rifle, 7)

        query = access_service.restrict_to_scope(
            db_session.query(Purchase), AccessScope.of([base_bravo.id]), Purchase.base_id
        )
        assert [p.quantity for p in query.all()] == [7]
