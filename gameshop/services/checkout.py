# gameshop/services/checkout.py
import logging
from datetime import datetime, timezone
from time import perf_counter
from typing import Dict, Optional

from fastapi import HTTPException
from sqlalchemy import delete

from gameshop.errors import (
    GameUnavailable, InsufficientBalance, ItemsNotFound, ShopError, UnknownCouponCode,
)
from gameshop.metrics import (
    checkout_latency, checkout_rejections, checkouts_total, coupon_redemptions_total,
)
from gameshop.models import (
    CartItem, CodeRedemption, GameStatus, Order, OrderItem, OrderStatus, UserGame, WalletTxType,
)
from gameshop.money import ZERO, round2
from gameshop.schemas import CheckoutRequest
from gameshop.services.coupons import count_redemptions, evaluate
from gameshop.services.uow import UnitOfWork
from gameshop.services.wallet import post_ledger_entry

logger = logging.getLogger(__name__)


def checkout(uow: UnitOfWork, user_id: int, req: CheckoutRequest, now: Optional[datetime] = None) -> Dict:
    """
    Cart -> order, all inside the caller's UnitOfWork:
      - lock the caller's selected cart rows (and their games, shared)
      - price them with a per-line unit price snapshot
      - lock + evaluate the coupon (any rejection aborts the whole checkout)
      - lock the user row; balance < total -> InsufficientBalance, nothing written
      - write order (PAID), order items, wallet debit + ledger row,
        ownership grants (insert-or-ignore), redemption + used_count,
        then delete the consumed cart rows
    Raising anywhere leaves the UnitOfWork to roll everything back.
    Returns {"order_id", "status", "total"}.
    """
    start = perf_counter()
    now = now or datetime.now(timezone.utc)
    db = uow.session

    try:
        lines = uow.lock_cart_lines(user_id, req.item_ids)
        if not lines:
            raise ItemsNotFound()
        for _, game in lines:
            if game.status != GameStatus.ACTIVE:
                raise GameUnavailable(f"game {game.id} is not available")

        # Price snapshot, rounded per line then in total
        priced = []
        for item, game in lines:
            unit = round2(game.price)
            priced.append((item, game, unit, round2(unit * item.qty)))
        subtotal = round2(sum((line_total for *_, line_total in priced), ZERO))

        discount = ZERO
        code = None
        if req.coupon_code:
            code = uow.lock_discount_code(req.coupon_code)
            if code is None:
                raise UnknownCouponCode()
            used = count_redemptions(db, code.id, user_id)
            discount = evaluate(code, subtotal, used, now)

        total = round2(max(ZERO, subtotal - discount))

        user = uow.lock_user(user_id)
        if round2(user.wallet_balance) < total:
            raise InsufficientBalance(
                f"wallet balance {round2(user.wallet_balance)} is below order total {total}"
            )

        order = Order(
            user_id=user_id,
            total_before_discount=subtotal,
            discount_amount=discount,
            total_paid=total,
            status=OrderStatus.PENDING,
        )
        db.add(order)
        db.flush()

        for item, game, unit, line_total in priced:
            db.add(OrderItem(
                order_id=order.id, game_id=game.id,
                unit_price=unit, qty=item.qty, subtotal=line_total,
            ))

        # A free order (100% coupon) moves no money, so it has no ledger row
        if total > ZERO:
            post_ledger_entry(db, user, WalletTxType.PURCHASE, total, order_id=order.id, note="Order payment")
        order.status = OrderStatus.PAID

        # Already-owned games are not an error on this path
        uow.insert_ignore(
            UserGame,
            [{"user_id": user_id, "game_id": game.id} for _, game, _, _ in priced],
            conflict_cols=("user_id", "game_id"),
        )

        if code is not None:
            db.add(CodeRedemption(code_id=code.id, user_id=user_id, order_id=order.id))
            code.used_count = code.used_count + 1

        db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id, CartItem.id.in_([item.id for item, *_ in priced]))
            .execution_options(synchronize_session=False)
        )
        db.flush()

        resp = {"order_id": order.id, "status": order.status, "total": total}
        redeemed = code is not None

        def committed():
            checkouts_total.inc()
            if redeemed:
                coupon_redemptions_total.inc()
            logger.info(
                "checkout user=%s order=%s subtotal=%s discount=%s total=%s",
                user_id, resp["order_id"], subtotal, discount, total,
            )

        uow.after_commit(committed)
        return resp

    except ShopError as e:
        checkout_rejections.labels(e.reason).inc()
        logger.warning("checkout rejected user=%s reason=%s", user_id, e.reason)
        raise
    except HTTPException as e:
        checkout_rejections.labels(str(e.status_code)).inc()
        raise
    finally:
        checkout_latency.observe(perf_counter() - start)
