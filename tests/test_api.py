from __future__ import annotations

from conftest import OWNER_ID, PROPERTY_ID, TENANT_ID, owner_headers, tenant_headers


def _create_deposit(client, amount="15000"):
    return client.post(
        "/api/deposits",
        json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID, "deposit_amount": amount, "notes": "lease 2026"},
        headers=owner_headers(),
    )


def _start_inspection(client):
    return client.post(
        "/api/inspections",
        json={
            "tenant_id": TENANT_ID,
            "property_id": PROPERTY_ID,
            "checklist": {"walls": "fair", "kitchen": "damaged"},
            "photos": ["kitchen.jpg"],
        },
        headers=owner_headers(),
    )


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert r.headers.get("X-Request-ID")


def test_full_move_out_flow(client, notifier):
    r = _create_deposit(client)
    assert r.status_code == 201, r.text
    dep = r.json()
    assert dep["status"] == "held"
    assert dep["refundable_amount"] == "15000.00"

    r = _start_inspection(client)
    assert r.status_code == 201, r.text
    insp = r.json()
    assert insp["inspector_id"] == OWNER_ID
    assert insp["checklist"] == {"kitchen": "damaged", "walls": "fair"}

    r = client.post(
        f"/api/inspections/{insp['id']}/deductions",
        json={"item_description": "Cabinet door", "cost": "4000", "category": "Damage"},
        headers=owner_headers(),
    )
    assert r.status_code == 201, r.text
    item = r.json()

    r = client.post(f"/api/inspections/{insp['id']}/complete", headers=owner_headers())
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"
    assert r.json()["refundable_amount"] == "11000.00"

    r = client.post(
        f"/api/deductions/{item['id']}/dispute",
        json={"reason": "That door was broken when I moved in"},
        headers=tenant_headers(),
    )
    assert r.status_code == 200, r.text
    assert r.json()["disputed"] is True

    r = client.get(f"/api/deposits/tenant/{TENANT_ID}/summary", headers=tenant_headers())
    assert r.status_code == 200
    summary = r.json()
    assert summary["disputed_count"] == 1
    assert summary["inspection"]["status"] == "disputed"
    assert summary["refund_ready"] is True

    r = client.post(
        "/api/deposits/refund",
        json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID},
        headers=owner_headers(),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "partially_refunded"
    assert r.json()["refunded_amount"] == "11000.00"

    r = client.post(
        "/api/deposits/refund",
        json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID},
        headers=owner_headers(),
    )
    assert r.status_code == 409
    assert r.json()["code"] == "already_refunded"

    assert notifier.events() == [
        "deposit.created",
        "inspection.completed",
        "deduction.disputed",
        "refund.processed",
    ]


def test_error_bodies_carry_codes(client):
    r = _create_deposit(client, amount="25000")
    assert r.status_code == 422
    body = r.json()
    assert body["code"] == "exceeds_legal_cap"
    assert "20000.00" in body["detail"]

    r = client.get(f"/api/deposits/tenant/{TENANT_ID}", headers=owner_headers())
    assert r.status_code == 404
    assert r.json()["code"] == "deposit_not_found"

    assert _create_deposit(client).status_code == 201
    r = _create_deposit(client, amount="100")
    assert r.status_code == 409
    assert r.json()["code"] == "deposit_exists"


def test_unstorable_money_is_422(client):
    r = _create_deposit(client, amount="1e30")
    assert r.status_code == 422
    assert r.json()["code"] == "invalid_amount"

    r = _create_deposit(client, amount="15000.005")
    assert r.status_code == 422
    assert r.json()["code"] == "invalid_amount"

    _create_deposit(client)
    insp = _start_inspection(client).json()
    r = client.post(
        f"/api/inspections/{insp['id']}/deductions",
        json={"item_description": "Paint", "cost": "1e30"},
        headers=owner_headers(),
    )
    assert r.status_code == 422
    assert r.json()["code"] == "invalid_amount"


def test_get_deposit_by_id(client):
    dep = _create_deposit(client).json()

    r = client.get(f"/api/deposits/{dep['id']}", headers=owner_headers())
    assert r.status_code == 200
    assert r.json()["tenant_id"] == TENANT_ID

    r = client.get("/api/deposits/99999", headers=owner_headers())
    assert r.status_code == 404
    assert r.json()["code"] == "deposit_not_found"


def test_short_dispute_reason_is_422(client):
    _create_deposit(client)
    insp = _start_inspection(client).json()
    item = client.post(
        f"/api/inspections/{insp['id']}/deductions",
        json={"item_description": "Paint", "cost": "300"},
        headers=owner_headers(),
    ).json()
    client.post(f"/api/inspections/{insp['id']}/complete", headers=owner_headers())

    r = client.post(
        f"/api/deductions/{item['id']}/dispute",
        json={"reason": "x" * 19},
        headers=tenant_headers(),
    )
    assert r.status_code == 422
    assert r.json()["code"] == "reason_too_short"


def test_finalized_inspection_rejects_edits(client):
    _create_deposit(client)
    insp = _start_inspection(client).json()
    client.post(f"/api/inspections/{insp['id']}/complete", headers=owner_headers())

    r = client.patch(
        f"/api/inspections/{insp['id']}/checklist",
        json={"item": "walls", "condition": "good"},
        headers=owner_headers(),
    )
    assert r.status_code == 409
    assert r.json()["code"] == "inspection_finalized"

    r = client.delete(f"/api/deposits/{insp['deposit_id']}", headers=owner_headers())
    assert r.status_code == 409
    assert r.json()["code"] == "refund_in_progress_or_completed"


def test_delete_held_deposit(client):
    dep = _create_deposit(client).json()
    _start_inspection(client)

    r = client.delete(f"/api/deposits/{dep['id']}", headers=owner_headers())
    assert r.status_code == 200
    assert r.json()["ok"] is True
    assert client.get(f"/api/deposits/property/{PROPERTY_ID}", headers=owner_headers()).status_code == 404
    assert client.get(f"/api/inspections/tenant/{TENANT_ID}", headers=owner_headers()).status_code == 404


def test_roles_are_enforced(client):
    r = client.post(
        "/api/deposits",
        json={"tenant_id": TENANT_ID, "property_id": PROPERTY_ID, "deposit_amount": "100"},
        headers=tenant_headers(),
    )
    assert r.status_code == 403

    assert client.get(f"/api/deposits/tenant/{TENANT_ID}").status_code == 401

    _create_deposit(client)
    r = client.get(f"/api/deposits/tenant/{TENANT_ID}", headers=tenant_headers(user_id=4242))
    assert r.status_code == 403
    r = client.get(f"/api/deposits/tenant/{TENANT_ID}", headers=tenant_headers())
    assert r.status_code == 200


def test_owner_list_and_stats(client, directory):
    _create_deposit(client)
    r = client.get("/api/deposits", params={"property_ids": [PROPERTY_ID]}, headers=owner_headers())
    assert r.status_code == 200
    assert [d["property_id"] for d in r.json()] == [PROPERTY_ID]

    r = client.get("/api/deposits/stats", params={"property_ids": [PROPERTY_ID]}, headers=owner_headers())
    assert r.status_code == 200
    assert r.json()["held"] == 1
    assert r.json()["total_held_amount"] == "15000.00"
