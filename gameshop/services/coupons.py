# gameshop/services/coupons.py
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gameshop.dates import as_utc
from gameshop.errors import (
    CodeAlreadyExists, CodeInUse, CouponExhausted, CouponExpired, CouponInactive,
    CouponNotFound, CouponNotStarted, CouponUserLimitReached, InvalidDiscount, NotFound,
    SubtotalTooLow,
)
from gameshop.models import CodeRedemption, DiscountCode, DiscountType
from gameshop.money import ZERO, round2, to_decimal
from gameshop.schemas import DiscountCodeCreate, DiscountCodeUpdate
from gameshop.services.uow import UnitOfWork

logger = logging.getLogger(__name__)


def evaluate(
    code: Optional[DiscountCode],
    subtotal: Decimal,
    prior_redemptions: int,
    now: datetime,
) -> Decimal:
    """
    Pure coupon evaluation. Returns the discount amount or raises the FIRST
    failing CouponRejected, checked in this order:
      not found -> inactive -> not started -> expired -> exhausted -> user limit
    Amount:
      PERCENT: round2(subtotal * value / 100)
      AMOUNT:  round2(min(value, subtotal))
      <= 0  -> SubtotalTooLow
    """
    if code is None:
        raise CouponNotFound()
    if not code.active:
        raise CouponInactive()

    now = as_utc(now)
    start_at, end_at = as_utc(code.start_at), as_utc(code.end_at)
    if start_at is not None and now < start_at:
        raise CouponNotStarted()
    if end_at is not None and now > end_at:
        raise CouponExpired()

    if code.max_uses is not None and code.used_count >= code.max_uses:
        raise CouponExhausted()
    if prior_redemptions >= (code.per_user_limit or 1):
        raise CouponUserLimitReached()

    subtotal = round2(subtotal)
    value = to_decimal(code.discount_value)
    if code.discount_type == DiscountType.PERCENT:
        amount = round2(subtotal * value / 100)
    else:
        amount = round2(min(value, subtotal))

    if amount <= ZERO:
        raise SubtotalTooLow()
    return amount


def count_redemptions(db: Session, code_id: int, user_id: int) -> int:
    return db.execute(
        select(func.count())
        .select_from(CodeRedemption)
        .where(CodeRedemption.code_id == code_id, CodeRedemption.user_id == user_id)
    ).scalar_one()


def preview_coupon(db: Session, user_id: int, code: str, subtotal: Decimal) -> Dict:
    """
    Advisory only: no lock, nothing written. Checkout re-evaluates under lock
    and may still reject (e.g. the code ran out in between).
    """
    dc = db.execute(
        select(DiscountCode).where(DiscountCode.code == code.strip())
    ).scalar_one_or_none()
    used = count_redemptions(db, dc.id, user_id) if dc else 0
    amount = evaluate(dc, subtotal, used, datetime.now(timezone.utc))
    return {"code": dc.code, "amount": amount}


# ---- admin ------------------------------------------------------------------

def deactivate_spent_codes(db: Session) -> int:
    """Flip active=false on codes past end_at or at their usage cap."""
    now = datetime.now(timezone.utc)
    result = db.execute(
        update(DiscountCode)
        .where(
            DiscountCode.active.is_(True),
            or_(
                DiscountCode.end_at < now,
                DiscountCode.max_uses.isnot(None) & (DiscountCode.used_count >= DiscountCode.max_uses),
            ),
        )
        .values(active=False)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    if result.rowcount:
        logger.info("deactivated %s spent discount codes", result.rowcount)
    return result.rowcount


def list_codes(db: Session) -> List[DiscountCode]:
    deactivate_spent_codes(db)
    return db.execute(select(DiscountCode).order_by(DiscountCode.id.desc())).scalars().all()


def get_code(db: Session, code_id: int) -> DiscountCode:
    dc = db.get(DiscountCode, code_id)
    if not dc:
        raise NotFound("discount code not found")
    return dc


def create_code(db: Session, payload: DiscountCodeCreate) -> DiscountCode:
    dc = DiscountCode(
        code=payload.code,
        description=payload.description,
        discount_type=payload.discount_type,
        discount_value=payload.discount_value,
        max_uses=payload.max_uses,
        per_user_limit=payload.per_user_limit or 1,
        active=payload.active,
        start_at=payload.start_at,
        end_at=payload.end_at,
    )
    db.add(dc)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise CodeAlreadyExists()
    db.refresh(dc)
    logger.info("discount code %s created", dc.code)
    return dc


def _patch_values(patch: DiscountCodeUpdate) -> Dict:
    """
    Fields sent in the body. A null for a required column means "leave it",
    except `active: null` which switches the code off and `per_user_limit: null`
    which resets it to 1. max_uses, start_at, end_at and description accept null.
    """
    changes = patch.model_dump(exclude_unset=True)
    for field in ("code", "discount_type", "discount_value"):
        if field in changes and changes[field] is None:
            del changes[field]
    if "active" in changes and changes["active"] is None:
        changes["active"] = False
    if "per_user_limit" in changes and changes["per_user_limit"] is None:
        changes["per_user_limit"] = 1
    return changes


def update_code(code_id: int, patch: DiscountCodeUpdate) -> Dict:
    """Partial update with the code row locked, so it serializes with redemptions."""
    changes = _patch_values(patch)
    try:
        with UnitOfWork() as uow:
            dc = uow.session.execute(
                select(DiscountCode).where(DiscountCode.id == code_id).with_for_update()
            ).scalar_one_or_none()
            if not dc:
                raise NotFound("discount code not found")
            if "code" in changes and changes["code"] != dc.code:
                taken = uow.session.execute(
                    select(DiscountCode.id).where(DiscountCode.code == changes["code"])
                ).first()
                if taken:
                    raise CodeAlreadyExists()
            for field, value in changes.items():
                setattr(dc, field, value)
            if dc.discount_type == DiscountType.PERCENT and not (1 <= dc.discount_value <= 100):
                raise InvalidDiscount()
            uow.session.flush()
            return {"id": dc.id, "code": dc.code, "updated": sorted(changes)}
    except IntegrityError:
        # Only a concurrent rename can still collide here
        if "code" not in changes:
            raise
        raise CodeAlreadyExists()


def delete_code(code_id: int) -> None:
    with UnitOfWork() as uow:
        dc = uow.session.execute(
            select(DiscountCode).where(DiscountCode.id == code_id).with_for_update()
        ).scalar_one_or_none()
        if not dc:
            raise NotFound("discount code not found")
        if dc.used_count > 0:
            raise CodeInUse()
        uow.session.execute(delete(CodeRedemption).where(CodeRedemption.code_id == code_id))
        uow.session.delete(dc)
    logger.info("discount code %s deleted", code_id)
