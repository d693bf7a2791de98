# tests/conftest.py
import os
import tempfile
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

# Local SQLite file unless DATABASE_URL points at Postgres
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite:///" + os.path.join(tempfile.gettempdir(), "gameshop-tests.db"),
)

from gameshop.main import app  # noqa
from gameshop.db import SessionLocal, engine  # noqa
from gameshop.models import Base, DiscountCode, DiscountType, Game, GameStatus, Role  # noqa
from gameshop.auth import create_session, hash_password  # noqa
from gameshop.models import User  # noqa
from gameshop.services.uow import UnitOfWork  # noqa
from gameshop.services.wallet import top_up  # noqa


@pytest.fixture(autouse=True)
def create_schema_and_clean_db():
    # Fresh tables per test so they don't interfere
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    with SessionLocal() as session:
        yield session


@pytest.fixture
def make_user():
    counter = {"n": 0}

    def _make(balance="0", role=Role.USER, password="secret-pass"):
        counter["n"] += 1
        n = counter["n"]
        with SessionLocal() as s:
            user = User(
                username=f"player{n}",
                email=f"player{n}@example.com",
                password_hash=hash_password(password),
                role=role,
                wallet_balance=0,
            )
            s.add(user)
            s.commit()
            user_id = user.id
        # Balances only move through the ledger
        if Decimal(balance) > 0:
            with UnitOfWork() as uow:
                top_up(uow, user_id, Decimal(balance))
        return user_id

    return _make


@pytest.fixture
def make_game():
    def _make(price="29.99", title="Sky Colony", status=GameStatus.ACTIVE):
        with SessionLocal() as s:
            game = Game(title=title, price=Decimal(price), status=status)
            s.add(game)
            s.commit()
            return game.id

    return _make


@pytest.fixture
def make_code():
    def _make(code="SAVE10", discount_type=DiscountType.PERCENT, value="10", **kw):
        with SessionLocal() as s:
            dc = DiscountCode(
                code=code, discount_type=discount_type, discount_value=Decimal(value),
                max_uses=kw.pop("max_uses", None), per_user_limit=kw.pop("per_user_limit", 1),
                active=kw.pop("active", True), **kw,
            )
            s.add(dc)
            s.commit()
            return dc.id

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user_id):
        with SessionLocal() as s:
            token = create_session(s, user_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def snapshot():
    """Everything a rolled-back checkout/purchase must leave untouched."""
    from sqlalchemy import func, select
    from gameshop.models import (
        CartItem, CodeRedemption, Order, OrderItem, UserGame, WalletTransaction,
    )

    def _snap(user_id):
        with SessionLocal() as s:
            count = lambda model: s.execute(select(func.count()).select_from(model)).scalar_one()  # noqa: E731
            return {
                "balance": s.get(User, user_id).wallet_balance,
                "cart": s.execute(
                    select(CartItem.id, CartItem.game_id, CartItem.qty)
                    .where(CartItem.user_id == user_id).order_by(CartItem.id)
                ).all(),
                "orders": count(Order),
                "order_items": count(OrderItem),
                "wallet_transactions": count(WalletTransaction),
                "user_games": count(UserGame),
                "redemptions": count(CodeRedemption),
                "used_counts": s.execute(
                    select(DiscountCode.id, DiscountCode.used_count).order_by(DiscountCode.id)
                ).all(),
            }

    return _snap
