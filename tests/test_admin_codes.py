# tests/test_admin_codes.py
from datetime import datetime, timedelta, timezone

import pytest

from gameshop.models import Role


@pytest.fixture
def admin(make_user, auth_headers):
    return auth_headers(make_user(role=Role.ADMIN))


def new_code(client, headers, **overrides):
    payload = {"code": " SPRING ", "discount_type": "PERCENT", "discount_value": "15", "max_uses": 100}
    payload.update(overrides)
    return client.post("/admin/discount-codes", json=payload, headers=headers)


def test_create_and_fetch(client, admin):
    r = new_code(client, admin)
    assert r.status_code == 201
    body = r.json()
    assert body["code"] == "SPRING"
    assert body["used_count"] == 0
    assert body["per_user_limit"] == 1

    r = client.get(f"/admin/discount-codes/{body['id']}", headers=admin)
    assert r.status_code == 200
    assert r.json()["code"] == "SPRING"


def test_duplicate_code(client, admin):
    assert new_code(client, admin).status_code == 201
    r = new_code(client, admin)
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "CODE_ALREADY_EXISTS"


@pytest.mark.parametrize("value", ["0", "101", "150.5"])
def test_percent_must_be_in_range(client, admin, value):
    assert new_code(client, admin, discount_value=value).status_code == 422


def test_listing_deactivates_spent_codes(client, admin, make_code):
    make_code("EXPIRED", end_at=datetime.now(timezone.utc) - timedelta(hours=1))
    make_code("USEDUP", max_uses=2, used_count=2)
    make_code("LIVE", max_uses=2, used_count=1)

    codes = {c["code"]: c for c in client.get("/admin/discount-codes", headers=admin).json()}
    assert codes["EXPIRED"]["active"] is False
    assert codes["USEDUP"]["active"] is False
    assert codes["LIVE"]["active"] is True


def test_update(client, admin):
    code_id = new_code(client, admin).json()["id"]

    r = client.put(f"/admin/discount-codes/{code_id}", json={"max_uses": 5, "active": False}, headers=admin)
    assert r.status_code == 200
    assert r.json()["updated"] == ["active", "max_uses"]

    body = client.get(f"/admin/discount-codes/{code_id}", headers=admin).json()
    assert body["max_uses"] == 5
    assert body["active"] is False


def test_update_rejects_out_of_range_percent(client, admin):
    code_id = new_code(client, admin).json()["id"]
    r = client.put(f"/admin/discount-codes/{code_id}", json={"discount_value": "250"}, headers=admin)
    assert r.status_code == 400
    assert r.json()["detail"]["reason"] == "INVALID_DISCOUNT"

    # switching to a flat amount makes the same value valid
    r = client.put(
        f"/admin/discount-codes/{code_id}",
        json={"discount_type": "AMOUNT", "discount_value": "250"},
        headers=admin,
    )
    assert r.status_code == 200


def test_update_missing_code(client, admin):
    assert client.put("/admin/discount-codes/999", json={"active": False}, headers=admin).status_code == 404


def test_delete_unused_code(client, admin):
    code_id = new_code(client, admin).json()["id"]
    assert client.delete(f"/admin/discount-codes/{code_id}", headers=admin).status_code == 200
    assert client.get(f"/admin/discount-codes/{code_id}", headers=admin).status_code == 404


def test_used_code_cannot_be_deleted(client, admin, make_user, make_game, make_code, auth_headers):
    code_id = make_code("USED", value="10")
    user = make_user(balance="50")
    headers = auth_headers(user)
    item = client.post("/cart", json={"game_id": make_game(price="10.00")}, headers=headers).json()["item_id"]
    assert client.post(
        "/cart/checkout", json={"item_ids": [item], "coupon_code": "USED"}, headers=headers
    ).status_code == 200

    r = client.delete(f"/admin/discount-codes/{code_id}", headers=admin)
    assert r.status_code == 400
    assert r.json()["detail"]["reason"] == "CODE_IN_USE"


@pytest.mark.parametrize("field", ["code", "discount_type", "discount_value"])
def test_null_required_field_is_left_alone(client, admin, field):
    code_id = new_code(client, admin).json()["id"]
    before = client.get(f"/admin/discount-codes/{code_id}", headers=admin).json()

    r = client.put(f"/admin/discount-codes/{code_id}", json={field: None}, headers=admin)
    assert r.status_code == 200
    assert r.json()["updated"] == []

    after = client.get(f"/admin/discount-codes/{code_id}", headers=admin).json()
    assert after[field] == before[field]


def test_null_active_switches_code_off(client, admin):
    code_id = new_code(client, admin).json()["id"]
    r = client.put(f"/admin/discount-codes/{code_id}", json={"active": None}, headers=admin)
    assert r.status_code == 200
    assert client.get(f"/admin/discount-codes/{code_id}", headers=admin).json()["active"] is False


def test_nullable_fields_can_be_cleared(client, admin):
    code_id = new_code(client, admin, end_at="2099-01-01T00:00:00Z", description="spring sale").json()["id"]
    r = client.put(
        f"/admin/discount-codes/{code_id}",
        json={"max_uses": None, "end_at": None, "description": None, "per_user_limit": None},
        headers=admin,
    )
    assert r.status_code == 200

    body = client.get(f"/admin/discount-codes/{code_id}", headers=admin).json()
    assert body["max_uses"] is None
    assert body["end_at"] is None
    assert body["description"] is None
    assert body["per_user_limit"] == 1


def test_rename_onto_existing_code(client, admin):
    new_code(client, admin, code="TAKEN")
    code_id = new_code(client, admin, code="MINE").json()["id"]

    r = client.put(f"/admin/discount-codes/{code_id}", json={"code": "TAKEN"}, headers=admin)
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "CODE_ALREADY_EXISTS"

    # keeping its own name is not a clash
    r = client.put(f"/admin/discount-codes/{code_id}", json={"code": "MINE"}, headers=admin)
    assert r.status_code == 200
