"""Authentication, sessions, master data and the audit log over HTTP."""

from datetime import timedelta

import pytest

from mams.errors import ConflictError, NotFoundError, ValidationError
from mams.models import SessionToken
from mams.permissions import ROLE_BASE_COMMANDER, ROLE_LOGISTICS_OFFICER
from mams.services import auth_service
from mams.services.auth_service import PasswordValidationError

TEST_PASSWORD = "Password123"


class TestLogin:

    def test_login_returns_token(self, client, admin_user):
        response = client.post("/api/auth/login", json={"email": "ADMIN@mams.test", "password": TEST_PASSWORD})

        assert response.status_code == 200
        body = response.get_json()
        assert len(body["token"]) == 64
        assert body["user"]["email"] == "admin@mams.test"

        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
        assert me.status_code == 200
        assert me.get_json()["actor"]["scope"]["unrestricted"] is True

    def test_wrong_password(self, client, admin_user):
        response = client.post("/api/auth/login", json={"email": "admin@mams.test", "password": "Wrong12345"})
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "unauthenticated"

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/auth/login", json={"email": "admin@mams.test"})
        assert response.status_code == 400

    def test_inactive_user_cannot_login(self, client, db_session, admin_user):
        admin_user.is_active = False
        db_session.commit()

        response = client.post("/api/auth/login", json={"email": "admin@mams.test", "password": TEST_PASSWORD})
        assert response.status_code == 401


class TestSessions:

    def test_missing_header(self, client, db_session):
        response = client.get("/api/purchases")
        assert response.status_code == 401
        assert response.get_json() == {
            "error": {"code": "unauthenticated", "message": "Authentication required"}
        }

    def test_unknown_token(self, client, db_session):
        response = client.get("/api/purchases", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_logout_revokes_token(self, client, auth_headers, commander_alpha):
        headers = auth_headers(commander_alpha)

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_idle_session_expires(self, client, db_session, auth_headers, commander_alpha):
        headers = auth_headers(commander_alpha)
        session = db_session.query(SessionToken).one()
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_me_reports_commander_scope(self, client, auth_headers, commander_alpha, base_alpha):
        body = client.get("/api/auth/me", headers=auth_headers(commander_alpha)).get_json()
        assert body["actor"]["role"] == ROLE_BASE_COMMANDER
        assert body["actor"]["scope"] == {"unrestricted": False, "base_ids": [base_alpha.id]}


class TestCreateUser:

    def test_email_is_normalized(self, db_session):
        user = auth_service.create_user("  Officer@MAMS.test ", TEST_PASSWORD, ROLE_LOGISTICS_OFFICER)
        assert user.email == "officer@mams.test"
        assert auth_service.authenticate("officer@mams.test", TEST_PASSWORD).id == user.id

    def test_duplicate_email(self, db_session, admin_user):
        with pytest.raises(ConflictError):
            auth_service.create_user("admin@mams.test", TEST_PASSWORD, ROLE_LOGISTICS_OFFICER)

    def test_commander_needs_base(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.create_user("cmd@mams.test", TEST_PASSWORD, ROLE_BASE_COMMANDER)
        assert exc_info.value.field == "base_id"

    def test_commander_base_must_exist(self, db_session):
        with pytest.raises(NotFoundError):
            auth_service.create_user("cmd@mams.test", TEST_PASSWORD, ROLE_BASE_COMMANDER, base_id=99999)

    def test_unknown_role(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            auth_service.create_user("x@mams.test", TEST_PASSWORD, "GENERAL")
        assert exc_info.value.field == "role"

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "ALLUPPERCASE1", "NoDigitsHere"])
    def test_weak_passwords(self, db_session, password):
        with pytest.raises(PasswordValidationError):
            auth_service.create_user("x@mams.test", password, ROLE_LOGISTICS_OFFICER)


class TestMasterData:

    def test_admin_creates_base(self, client, auth_headers, admin_user):
        headers = auth_headers(admin_user)
        response = client.post("/api/bases", json={"name": "Fort Delta", "code": "delta"}, headers=headers)

        assert response.status_code == 201
        assert response.get_json()["base"]["code"] == "DELTA"

        response = client.post("/api/bases", json={"name": "Delta Two", "code": "DELTA"}, headers=headers)
        assert response.status_code == 409
        assert response.get_json()["error"]["code"] == "conflict"

    def test_commander_cannot_create_base(self, client, auth_headers, commander_alpha):
        response = client.post(
            "/api/bases", json={"name": "Fort Echo", "code": "ECHO"}, headers=auth_headers(commander_alpha)
        )
        assert response.status_code == 403

    def test_bases_listing_is_scoped(self, client, auth_headers, commander_alpha, base_alpha, base_bravo):
        response = client.get("/api/bases", headers=auth_headers(commander_alpha))
        assert [b["id"] for b in response.get_json()["items"]] == [base_alpha.id]

    def test_equipment_type_defaults(self, client, auth_headers, admin_user, commander_alpha):
        response = client.post(
            "/api/equipment-types",
            json={"name": "Humvee", "category": "VEHICLE"},
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 201
        assert response.get_json()["equipment_type"]["unit"] == "unit"

        response = client.get("/api/equipment-types?category=VEHICLE", headers=auth_headers(commander_alpha))
        assert [et["name"] for et in response.get_json()["items"]] == ["Humvee"]


class TestAuditLog:

    def test_admin_sees_movements(self, client, auth_headers, admin_user, logistics_user, base_alpha, rifle):
        client.post(
            "/api/purchases",
            json={"base_id": base_alpha.id, "equipment_type_id": rifle.id, "quantity": 5},
            headers=auth_headers(logistics_user),
        )

        response = client.get("/api/audit-logs?action=PURCHASE_CREATED", headers=auth_headers(admin_user))

        assert response.status_code == 200
        body = response.get_json()
        assert body["limit"] == 50
        [log] = body["items"]
        assert log["actor_id"] == logistics_user.id
        assert log["base_id"] == base_alpha.id
        assert log["metadata"] == {"equipment_type_id": rifle.id, "quantity": 5}

    def test_non_admin_forbidden(self, client, auth_headers, commander_alpha):
        response = client.get("/api/audit-logs", headers=auth_headers(commander_alpha))
        assert response.status_code == 403

    def test_limit_is_capped(self, client, auth_headers, admin_user):
        response = client.get("/api/audit-logs?limit=1000", headers=auth_headers(admin_user))
        assert response.get_json()["limit"] == 200


def test_health(client, db_session):
    response = client.get("/api/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["checks"]["database"]["status"] == "healthy"
    assert body["checks"]["audit_sink"]["mode"] == "sync"


def test_unknown_route_is_json(client, db_session):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.get_json()["error"]["code"] == "not_found"
