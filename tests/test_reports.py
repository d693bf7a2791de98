# tests/test_reports.py
from decimal import Decimal

from gameshop.models import Role


def buy(client, headers, game_id, qty=1):
    r = client.post("/store/purchase", json={"game_id": game_id, "qty": qty}, headers=headers)
    assert r.status_code == 200, r.text


def seed_sales(client, make_user, make_game, auth_headers):
    alpha = make_game(price="10.00", title="Alpha")
    beta = make_game(price="40.00", title="Beta")
    make_game(price="5.00", title="Gamma")

    buyer_one = auth_headers(make_user(balance="200"))
    buyer_two = auth_headers(make_user(balance="200"))
    buy(client, buyer_one, alpha, qty=3)
    buy(client, buyer_two, alpha, qty=1)
    buy(client, buyer_one, beta)
    return alpha, beta


def test_public_rankings_include_unsold_games(client, make_user, make_game, auth_headers):
    seed_sales(client, make_user, make_game, auth_headers)

    body = client.get("/rankings/top").json()
    assert body["sort"] == "qty"
    rows = body["data"]
    assert [(r["rank"], r["title"], r["qty"]) for r in rows] == [
        (1, "Alpha", 4), (2, "Beta", 1), (3, "Gamma", 0),
    ]

    rows = client.get("/rankings/top", params={"sort": "revenue"}).json()["data"]
    # Alpha and Beta tie on revenue; ties break by title
    assert [r["title"] for r in rows] == ["Alpha", "Beta", "Gamma"]
    assert Decimal(str(rows[0]["revenue"])) == Decimal("40.00")


def test_admin_rankings_only_sold_games(client, make_user, make_game, auth_headers):
    seed_sales(client, make_user, make_game, auth_headers)
    admin = auth_headers(make_user(role=Role.ADMIN))

    rows = client.get("/admin/rankings/top", headers=admin).json()["data"]
    assert [r["title"] for r in rows] == ["Alpha", "Beta"]


def test_kpis(client, make_user, make_game, auth_headers):
    alpha, _ = seed_sales(client, make_user, make_game, auth_headers)
    admin = auth_headers(make_user(role=Role.ADMIN))

    body = client.get("/admin/rankings/kpis", headers=admin).json()
    assert body["orders_count"] == 3
    assert body["total_sales"] == 5
    assert Decimal(str(body["total_revenue"])) == Decimal("80.00")
    assert Decimal(str(body["avg_order_value"])) == Decimal("26.67")
    assert body["top_seller"]["game_id"] == alpha
    assert body["top_seller"]["qty"] == 4


def test_kpis_window(client, make_user, make_game, auth_headers):
    seed_sales(client, make_user, make_game, auth_headers)
    admin = auth_headers(make_user(role=Role.ADMIN))

    body = client.get(
        "/admin/rankings/kpis", params={"start": "2000-01-01", "end": "2000-12-31"}, headers=admin
    ).json()
    assert body["orders_count"] == 0
    assert body["top_seller"] is None
    assert body["start"] == "2000-01-01"

    r = client.get("/admin/rankings/kpis", params={"start": "2000-02-01", "end": "2000-01-01"}, headers=admin)
    assert r.status_code == 400
