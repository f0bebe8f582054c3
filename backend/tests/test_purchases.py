"""Purchase recording over the API and the service layer."""

from datetime import timedelta

import pytest

from mams.errors import AuthorizationError, ValidationError
from mams.extensions import db
from mams.models import LedgerEntry, Purchase
from mams.services import purchase_service
from mams.services.ledger_service import get_balance
from mams.time_utils import to_utc_z, utcnow


def _post(client, headers, **body):
    return client.post("/api/purchases", json=body, headers=headers)


class TestCreatePurchase:

    def test_logistics_records_purchase(self, client, auth_headers, logistics_user, base_alpha, rifle):
        response = _post(
            client,
            auth_headers(logistics_user),
            base_id=base_alpha.id,
            equipment_type_id=rifle.id,
            quantity=100,
            vendor="Acme Arms",
        )

        assert response.status_code == 201
        purchase = response.get_json()["purchase"]
        assert purchase["quantity"] == 100
        assert purchase["vendor"] == "Acme Arms"
        assert purchase["created_by_user_id"] == logistics_user.id
        assert get_balance(base_alpha.id, rifle.id) == 100

        entry = db.session.query(LedgerEntry).filter_by(ref_type="purchase", ref_id=purchase["id"]).one()
        assert entry.qty_change == 100

    def test_commander_records_at_home_base(self, client, auth_headers, commander_alpha, base_alpha, rifle):
        response = _post(
            client, auth_headers(commander_alpha), base_id=base_alpha.id, equipment_type_id=rifle.id, quantity=3
        )
        assert response.status_code == 201

    @pytest.mark.parametrize("quantity", [0, -5, "12.5", 12.5, "1e3", True, None])
    def test_invalid_quantity(self, client, auth_headers, admin_user, base_alpha, rifle, quantity):
        response = _post(
            client, auth_headers(admin_user), base_id=base_alpha.id, equipment_type_id=rifle.id, quantity=quantity
        )

        assert response.status_code == 400
        error = response.get_json()["error"]
        assert error["code"] == "validation_error"
        assert error["field"] == "quantity"
        assert db.session.query(Purchase).count() == 0

    def test_numeric_string_quantity_accepted(self, client, auth_headers, admin_user, base_alpha, rifle):
        response = _post(
            client, auth_headers(admin_user), base_id=base_alpha.id, equipment_type_id=rifle.id, quantity="7"
        )
        assert response.status_code == 201
        assert response.get_json()["purchase"]["quantity"] == 7

    def test_out_of_scope_base_forbidden(self, client, auth_headers, commander_alpha, base_bravo, rifle):
        response = _post(
            client, auth_headers(commander_alpha), base_id=base_bravo.id, equipment_type_id=rifle.id, quantity=3
        )

        assert response.status_code == 403
        assert response.get_json()["error"]["code"] == "forbidden"
        assert get_balance(base_bravo.id, rifle.id) == 0

    def test_unknown_base_not_found(self, client, auth_headers, admin_user, rifle):
        response = _post(client, auth_headers(admin_user), base_id=99999, equipment_type_id=rifle.id, quantity=3)
        assert response.status_code == 404

    def test_unknown_equipment_type_not_found(self, client, auth_headers, admin_user, base_alpha):
        response = _post(client, auth_headers(admin_user), base_id=base_alpha.id, equipment_type_id=99999, quantity=3)
        assert response.status_code == 404
        assert db.session.query(LedgerEntry).count() == 0

    def test_future_purchase_rejected(self, client, auth_headers, admin_user, base_alpha, rifle):
        response = _post(
            client,
            auth_headers(admin_user),
            base_id=base_alpha.id,
            equipment_type_id=rifle.id,
            quantity=3,
            purchased_at=to_utc_z(utcnow() + timedelta(days=2)),
        )

        assert response.status_code == 400
        assert response.get_json()["error"]["field"] == "purchased_at"

    def test_blank_purchased_at_defaults_to_now(self, client, auth_headers, admin_user, base_alpha, rifle):
        response = _post(
            client,
            auth_headers(admin_user),
            base_id=base_alpha.id,
            equipment_type_id=rifle.id,
            quantity=3,
            purchased_at="   ",
        )

        assert response.status_code == 201
        assert response.get_json()["purchase"]["purchased_at"] is not None

    @pytest.mark.parametrize("quantity", [2**31, 10**20, str(10**20)])
    def test_oversized_quantity_rejected(self, client, auth_headers, admin_user, base_alpha, rifle, quantity):
        response = _post(
            client, auth_headers(admin_user), base_id=base_alpha.id, equipment_type_id=rifle.id, quantity=quantity
        )

        assert response.status_code == 400
        error = response.get_json()["error"]
        assert error["code"] == "validation_error"
        assert error["field"] == "quantity"
        assert db.session.query(Purchase).count() == 0

    def test_non_object_body_rejected(self, client, auth_headers, admin_user):
        response = client.post("/api/purchases", json=[1, 2, 3], headers=auth_headers(admin_user))
        assert response.status_code == 400

    def test_unauthenticated(self, client, base_alpha, rifle):
        response = client.post("/api/purchases", json={"base_id": base_alpha.id})
        assert response.status_code == 401
        assert response.get_json()["error"]["code"] == "unauthenticated"

    def test_role_check_precedes_validation(self, db_session, base_alpha):
        from mams.permissions import actor_for

        with pytest.raises(AuthorizationError):
            purchase_service.create_purchase(
                actor_for("UNKNOWN", user_id=None), base_id=base_alpha.id, equipment_type_id=None, quantity=0
            )

    def test_service_rejects_missing_base(self, admin, rifle):
        with pytest.raises(ValidationError) as exc_info:
            purchase_service.create_purchase(admin, base_id=None, equipment_type_id=rifle.id, quantity=1)
        assert exc_info.value.field == "base_id"


class TestListPurchases:

    def test_scoped_and_filtered(self, client, auth_headers, commander_alpha, stock, base_alpha, base_bravo, rifle, ammo):
        stock(base_alpha, rifle, 1)
        stock(base_alpha, ammo, 2)
        stock(base_bravo, rifle, 3)

        headers = auth_headers(commander_alpha)
        response = client.get("/api/purchases", headers=headers)
        assert response.status_code == 200
        assert sorted(p["quantity"] for p in response.get_json()["items"]) == [1, 2]

        response = client.get(f"/api/purchases?equipmentTypeId={ammo.id}", headers=headers)
        assert [p["quantity"] for p in response.get_json()["items"]] == [2]

        response = client.get(f"/api/purchases?baseId={base_bravo.id}", headers=headers)
        assert response.status_code == 403

    def test_window_and_pagination(self, client, auth_headers, admin_user, stock, base_alpha, rifle):
        stock(base_alpha, rifle, 1, purchased_at="2025-01-01T08:00:00Z")
        stock(base_alpha, rifle, 2, purchased_at="2025-01-05T08:00:00Z")
        stock(base_alpha, rifle, 3, purchased_at="2025-01-09T08:00:00Z")

        headers = auth_headers(admin_user)
        response = client.get("/api/purchases?from=2025-01-02&to=2025-01-09", headers=headers)
        assert [p["quantity"] for p in response.get_json()["items"]] == [3, 2]

        response = client.get("/api/purchases?limit=1&offset=1", headers=headers)
        body = response.get_json()
        assert body["limit"] == 1
        assert body["offset"] == 1
        assert [p["quantity"] for p in body["items"]] == [2]

    def test_malformed_filter_rejected(self, client, auth_headers, admin_user):
        response = client.get("/api/purchases?baseId=abc", headers=auth_headers(admin_user))
        assert response.status_code == 400
        assert response.get_json()["error"]["field"] == "baseId"
