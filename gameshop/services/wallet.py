# gameshop/services/wallet.py
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.orm import Session

from gameshop.errors import InsufficientBalance, InvalidAmount, UserNotFound
from gameshop.metrics import topups_total
from gameshop.models import Game, OrderItem, User, WalletTransaction, WalletTxType
from gameshop.money import ZERO, round2, to_decimal
from gameshop.services.uow import UnitOfWork

logger = logging.getLogger(__name__)


def post_ledger_entry(
    db: Session,
    user: User,
    tx_type: WalletTxType,
    amount: Decimal,
    order_id: Optional[int] = None,
    note: Optional[str] = None,
) -> WalletTransaction:
    """
    The only writer of users.wallet_balance. `user` must already be locked
    (UnitOfWork.lock_user). Applies the delta and appends the ledger row whose
    balance_after is read back from the updated user row.
    """
    amount = round2(amount)
    if amount <= ZERO:
        raise ValueError("ledger amounts are positive magnitudes")

    current = round2(user.wallet_balance)
    if tx_type == WalletTxType.PURCHASE:
        if current < amount:
            raise InsufficientBalance()
        user.wallet_balance = round2(current - amount)
    else:
        user.wallet_balance = round2(current + amount)
    db.flush()
    db.refresh(user, attribute_names=["wallet_balance"])

    entry = WalletTransaction(
        user_id=user.id,
        type=tx_type,
        amount=amount,
        balance_after=round2(user.wallet_balance),
        ref_order_id=order_id,
        note=note,
    )
    db.add(entry)
    db.flush()
    return entry


def top_up(uow: UnitOfWork, user_id: int, amount: Decimal) -> Dict:
    amount = to_decimal(amount)
    if not amount.is_finite() or amount <= ZERO or amount != round2(amount):
        raise InvalidAmount()
    user = uow.lock_user(user_id)
    entry = post_ledger_entry(uow.session, user, WalletTxType.TOPUP, amount, note="Wallet top-up")
    amount, balance = entry.amount, entry.balance_after

    def committed():
        topups_total.inc()
        logger.info("user %s topped up %s, balance %s", user_id, amount, balance)

    uow.after_commit(committed)
    return {"balance": balance}


def get_balance(db: Session, user_id: int) -> Decimal:
    balance = db.execute(select(User.wallet_balance).where(User.id == user_id)).scalar_one_or_none()
    if balance is None:
        raise UserNotFound()
    return round2(balance)


def _order_titles(db: Session, order_ids: List[int]) -> Dict[int, str]:
    if not order_ids:
        return {}
    rows = db.execute(
        select(OrderItem.order_id, Game.title)
        .join(Game, Game.id == OrderItem.game_id)
        .where(OrderItem.order_id.in_(order_ids))
        .order_by(OrderItem.order_id, OrderItem.id)
    ).all()
    titles: Dict[int, List[str]] = {}
    for order_id, title in rows:
        titles.setdefault(order_id, []).append(title)
    return {order_id: ", ".join(names) for order_id, names in titles.items()}


def list_transactions(db: Session, user_id: int, limit: Optional[int] = None) -> List[Dict]:
    """Newest first; purchase rows carry the title(s) of the games they paid for."""
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.id.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    rows = db.execute(stmt).scalars().all()

    titles = _order_titles(db, sorted({r.ref_order_id for r in rows if r.ref_order_id}))
    return [
        {
            "id": r.id,
            "type": r.type,
            "amount": round2(r.amount),
            "balance_after": round2(r.balance_after),
            "created_at": r.created_at,
            "note": r.note,
            "ref_order_id": r.ref_order_id,
            "game_title": titles.get(r.ref_order_id),
        }
        for r in rows
    ]


def summarize_transactions(db: Session, user_id: int) -> Dict:
    totals = db.execute(
        select(
            func.count(WalletTransaction.id).label("total_count"),
            func.coalesce(func.avg(WalletTransaction.amount), 0).label("avg_amount"),
            func.coalesce(func.sum(case(
                (WalletTransaction.type == WalletTxType.TOPUP, WalletTransaction.amount), else_=0
            )), 0).label("total_topup"),
            func.coalesce(func.sum(case(
                (WalletTransaction.type == WalletTxType.PURCHASE, WalletTransaction.amount), else_=0
            )), 0).label("total_purchase"),
        ).where(WalletTransaction.user_id == user_id)
    ).one()

    return {
        "total_count": int(totals.total_count or 0),
        "total_topup": round2(totals.total_topup),
        "total_purchase": round2(totals.total_purchase),
        "avg_amount": round2(totals.avg_amount),
    }


@dataclass
class LedgerReplay:
    user_id: int
    balance: Decimal
    replayed_balance: Decimal
    consistent: bool
    first_mismatch_id: Optional[int] = None


def replay_ledger(db: Session, user_id: int) -> LedgerReplay:
    """
    Rebuild the wallet from the ledger: start at 0, TOPUP adds, PURCHASE
    subtracts, in id order. Every balance_after must equal the running sum
    and the final sum must equal users.wallet_balance.
    """
    balance = get_balance(db, user_id)
    running = ZERO
    mismatch = None
    entries = db.execute(
        select(WalletTransaction)
        .where(WalletTransaction.user_id == user_id)
        .order_by(WalletTransaction.id)
    ).scalars()
    for entry in entries:
        amount = to_decimal(entry.amount)
        running = round2(running + amount if entry.type == WalletTxType.TOPUP else running - amount)
        if mismatch is None and round2(entry.balance_after) != running:
            mismatch = entry.id

    return LedgerReplay(
        user_id=user_id,
        balance=balance,
        replayed_balance=running,
        consistent=mismatch is None and running == balance,
        first_mismatch_id=mismatch,
    )
