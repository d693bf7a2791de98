# gameshop/services/purchases.py
import logging
from time import perf_counter
from typing import Dict

from sqlalchemy import select

from gameshop.errors import AlreadyOwned, GameUnavailable, InsufficientBalance, ShopError
from gameshop.metrics import purchase_latency, purchase_rejections, purchases_total
from gameshop.models import GameStatus, Order, OrderItem, OrderStatus, UserGame, WalletTxType
from gameshop.money import ZERO, round2
from gameshop.schemas import PurchaseRequest
from gameshop.services.uow import UnitOfWork
from gameshop.services.wallet import post_ledger_entry

logger = logging.getLogger(__name__)


def purchase_game(uow: UnitOfWork, user_id: int, req: PurchaseRequest) -> Dict:
    """
    "Buy now" for one game, no cart and no coupon. Every rejection happens
    before the first write, so a rejected purchase never creates an order:
      - game missing / not ACTIVE -> GameUnavailable (400)
      - already owned             -> AlreadyOwned (409), unlike checkout
      - balance < price * qty     -> InsufficientBalance (402)
    Ownership is checked after the user row is locked so two concurrent
    "buy now" calls for the same game cannot both pass it.
    Returns {"order_id", "balance"}.
    """
    start = perf_counter()
    db = uow.session

    try:
        game = uow.lock_game(req.game_id)
        if game is None or game.status != GameStatus.ACTIVE:
            raise GameUnavailable()

        user = uow.lock_user(user_id)

        owned = db.execute(
            select(UserGame.id).where(UserGame.user_id == user_id, UserGame.game_id == game.id)
        ).first()
        if owned:
            raise AlreadyOwned()

        unit = round2(game.price)
        total = round2(unit * req.qty)
        if round2(user.wallet_balance) < total:
            raise InsufficientBalance()

        order = Order(
            user_id=user_id,
            total_before_discount=total,
            discount_amount=ZERO,
            total_paid=total,
            status=OrderStatus.PAID,
        )
        db.add(order)
        db.flush()

        db.add(OrderItem(order_id=order.id, game_id=game.id, unit_price=unit, qty=req.qty, subtotal=total))
        db.add(UserGame(user_id=user_id, game_id=game.id))

        balance = round2(user.wallet_balance)
        if total > ZERO:
            entry = post_ledger_entry(
                db, user, WalletTxType.PURCHASE, total,
                order_id=order.id, note=f"Purchase: {game.title}",
            )
            balance = entry.balance_after
        db.flush()

        resp = {"order_id": order.id, "balance": round2(balance)}
        game_id = game.id

        def committed():
            purchases_total.inc()
            logger.info("purchase user=%s game=%s order=%s total=%s", user_id, game_id, resp["order_id"], total)

        uow.after_commit(committed)
        return resp

    except ShopError as e:
        purchase_rejections.labels(e.reason).inc()
        logger.warning("purchase rejected user=%s game=%s reason=%s", user_id, req.game_id, e.reason)
        raise
    finally:
        purchase_latency.observe(perf_counter() - start)
