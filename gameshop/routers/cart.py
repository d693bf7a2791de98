from typing import List

from fastapi import APIRouter, Depends

from gameshop.auth import Identity, get_identity
from gameshop.db import SessionLocal
from gameshop.schemas import (
    CartAdd, CartLineOut, CartUpdate, CheckoutOut, CheckoutRequest,
    CouponPreviewIn, CouponPreviewOut,
)
from gameshop.services import cart as cart_service
from gameshop.services.checkout import checkout
from gameshop.services.coupons import preview_coupon
from gameshop.services.uow import UnitOfWork

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=List[CartLineOut])
def list_cart(identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return cart_service.list_cart(db, identity.user_id)


@router.post("", response_model=CartLineOut)
def add_item(payload: CartAdd, identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return cart_service.add_to_cart(db, identity.user_id, payload.game_id, payload.qty)


@router.patch("/{item_id}", response_model=CartLineOut)
def update_item(item_id: int, payload: CartUpdate, identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return cart_service.update_qty(db, identity.user_id, item_id, payload.qty)


@router.delete("/{item_id}")
def remove_item(item_id: int, identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        cart_service.remove_item(db, identity.user_id, item_id)
    return {"ok": True}


@router.post("/validate-coupon", response_model=CouponPreviewOut)
def validate_coupon(payload: CouponPreviewIn, identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return preview_coupon(db, identity.user_id, payload.code, payload.subtotal)


@router.post("/checkout", response_model=CheckoutOut)
def checkout_cart(payload: CheckoutRequest, identity: Identity = Depends(get_identity)):
    with UnitOfWork() as uow:
        return checkout(uow, identity.user_id, payload)
