"""
End-to-end stock story over the HTTP API.

Purchase -> transfer out -> assignment -> direct and linked expenditures,
with each role doing its own part.
"""

from mams.extensions import db
from mams.models import LedgerEntry
from mams.services.ledger_service import get_balance, verify_positions


def _balance(client, headers, base_id, equipment_type_id):
    response = client.get(
        f"/api/ledger/balance?baseId={base_id}&equipmentTypeId={equipment_type_id}",
        headers=headers,
    )
    assert response.status_code == 200
    return response.get_json()["balance"]


def test_stock_lifecycle(client, auth_headers, admin_user, logistics_user, commander_alpha, commander_bravo,
                         base_alpha, base_bravo, rifle):
    admin = auth_headers(admin_user)
    logistics = auth_headers(logistics_user)
    cmd_alpha = auth_headers(commander_alpha)
    cmd_bravo = auth_headers(commander_bravo)

    assert _balance(client, admin, base_alpha.id, rifle.id) == 0

    response = client.post(
        "/api/purchases",
        json={"base_id": base_alpha.id, "equipment_type_id": rifle.id, "quantity": 100},
        headers=logistics,
    )
    assert response.status_code == 201
    assert _balance(client, admin, base_alpha.id, rifle.id) == 100

    response = client.post(
        "/api/transfers",
        json={
            "from_base_id": base_alpha.id,
            "to_base_id": base_bravo.id,
            "items": [{"equipment_type_id": rifle.id, "quantity": 40}],
        },
        headers=logistics,
    )
    assert response.status_code == 201
    transfer_id = response.get_json()["transfer"]["id"]

    assert client.post(f"/api/transfers/{transfer_id}/approve", headers=cmd_alpha).status_code == 200
    assert client.post(f"/api/transfers/{transfer_id}/dispatch", headers=logistics).status_code == 200
    assert client.post(f"/api/transfers/{transfer_id}/receive", headers=cmd_bravo).status_code == 200

    assert _balance(client, admin, base_alpha.id, rifle.id) == 60
    assert _balance(client, admin, base_bravo.id, rifle.id) == 40
    assert db.session.query(LedgerEntry).filter_by(ref_type="transfer", ref_id=transfer_id).count() == 2

    response = client.post(
        "/api/assignments",
        json={
            "base_id": base_alpha.id,
            "assignee_name": "Sgt. Rivera",
            "items": [{"equipment_type_id": rifle.id, "quantity": 50}],
        },
        headers=cmd_alpha,
    )
    assert response.status_code == 201
    assignment_id = response.get_json()["assignment"]["id"]
    assert _balance(client, admin, base_alpha.id, rifle.id) == 10

    response = client.get(f"/api/assignments/{assignment_id}", headers=cmd_alpha)
    assert response.get_json()["assignment"]["lines"][0]["remaining"] == 50

    response = client.post(
        "/api/expenditures",
        json={
            "base_id": base_alpha.id,
            "reason": "Range exercise",
            "items": [{"equipment_type_id": rifle.id, "quantity": 15}],
        },
        headers=cmd_alpha,
    )
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "insufficient_stock"
    assert error["detail"]["available"] == 10

    linked = {
        "base_id": base_alpha.id,
        "reason": "Consumed on deployment",
        "related_assignment_id": assignment_id,
        "items": [{"equipment_type_id": rifle.id, "quantity": 50}],
    }
    assert client.post("/api/expenditures", json=linked, headers=cmd_alpha).status_code == 201

    linked["items"] = [{"equipment_type_id": rifle.id, "quantity": 1}]
    response = client.post("/api/expenditures", json=linked, headers=cmd_alpha)
    assert response.status_code == 400
    error = response.get_json()["error"]
    assert error["code"] == "exceeds_remaining"
    assert error["detail"]["remaining"] == 0

    assert get_balance(base_alpha.id, rifle.id) == 10
    assert verify_positions() == []


def test_listing_is_repeatable(client, auth_headers, admin_user, stock, base_alpha, rifle):
    for quantity in (1, 2, 3, 4):
        stock(base_alpha, rifle, quantity, purchased_at="2025-01-01T00:00:00Z")

    headers = auth_headers(admin_user)
    first = client.get("/api/purchases?limit=2&offset=1", headers=headers).get_json()
    second = client.get("/api/purchases?limit=2&offset=1", headers=headers).get_json()

    assert first == second
    assert [p["quantity"] for p in first["items"]] == [3, 2]
