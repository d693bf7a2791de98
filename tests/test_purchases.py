# tests/test_purchases.py
from decimal import Decimal

from sqlalchemy import select

from gameshop.models import GameStatus, Order, OrderItem, UserGame, WalletTransaction, WalletTxType


def test_buy_now(client, make_user, make_game, auth_headers, db):
    user = make_user(balance="50.00")
    game = make_game(price="29.99", title="Sky Colony")

    r = client.post("/store/purchase", json={"game_id": game}, headers=auth_headers(user))
    assert r.status_code == 200, r.text
    body = r.json()
    assert Decimal(str(body["balance"])) == Decimal("20.01")

    order = db.get(Order, body["order_id"])
    assert order.total_paid == Decimal("29.99")
    assert order.discount_amount == Decimal("0.00")
    line = db.execute(select(OrderItem).where(OrderItem.order_id == order.id)).scalar_one()
    assert (line.game_id, line.qty, line.unit_price) == (game, 1, Decimal("29.99"))

    entry = db.execute(
        select(WalletTransaction).where(WalletTransaction.type == WalletTxType.PURCHASE)
    ).scalar_one()
    assert entry.note == "Purchase: Sky Colony"
    assert entry.balance_after == Decimal("20.01")
    assert entry.ref_order_id == order.id


def test_insufficient_balance_creates_no_order(client, make_user, make_game, auth_headers, snapshot):
    user = make_user(balance="10.00")
    game = make_game(price="29.99")

    before = snapshot(user)
    r = client.post("/store/purchase", json={"game_id": game}, headers=auth_headers(user))
    assert r.status_code == 402
    assert r.json()["detail"]["reason"] == "INSUFFICIENT_BALANCE"
    assert snapshot(user) == before
    assert before["orders"] == 0


def test_cannot_buy_an_owned_game_twice(client, make_user, make_game, auth_headers, snapshot):
    user = make_user(balance="100")
    game = make_game(price="10.00")
    headers = auth_headers(user)

    assert client.post("/store/purchase", json={"game_id": game}, headers=headers).status_code == 200

    before = snapshot(user)
    r = client.post("/store/purchase", json={"game_id": game}, headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"]["reason"] == "ALREADY_OWNED"
    assert snapshot(user) == before


def test_inactive_or_missing_game(client, make_user, make_game, auth_headers):
    user = make_user(balance="100")
    hidden = make_game(price="10.00", status=GameStatus.INACTIVE)
    headers = auth_headers(user)

    r = client.post("/store/purchase", json={"game_id": hidden}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["reason"] == "GAME_UNAVAILABLE"

    r = client.post("/store/purchase", json={"game_id": 9999}, headers=headers)
    assert r.status_code == 400
    assert r.json()["detail"]["reason"] == "GAME_UNAVAILABLE"


def test_quantity_multiplies_price(client, make_user, make_game, auth_headers, db):
    user = make_user(balance="100")
    game = make_game(price="12.50")

    r = client.post("/store/purchase", json={"game_id": game, "qty": 3}, headers=auth_headers(user))
    assert r.status_code == 200
    assert Decimal(str(r.json()["balance"])) == Decimal("62.50")
    assert db.get(Order, r.json()["order_id"]).total_paid == Decimal("37.50")


def test_owned_games_listing(client, make_user, make_game, auth_headers, db):
    user = make_user(balance="100")
    game = make_game(price="10.00", title="Deep Harbor")
    headers = auth_headers(user)
    client.post("/store/purchase", json={"game_id": game}, headers=headers)

    r = client.get("/me/games", headers=headers)
    assert r.status_code == 200
    assert [g["title"] for g in r.json()] == ["Deep Harbor"]
    assert db.execute(select(UserGame).where(UserGame.user_id == user)).scalar_one().game_id == game


def test_invalid_quantity(client, make_user, make_game, auth_headers):
    user = make_user(balance="100")
    game = make_game()
    r = client.post("/store/purchase", json={"game_id": game, "qty": 0}, headers=auth_headers(user))
    assert r.status_code == 422
