from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from gameshop.auth import require_admin
from gameshop.config import settings
from gameshop.db import SessionLocal
from gameshop.models import Role, User
from gameshop.schemas import (
    AdminUserUpdate, CategoryIn, CategoryOut, DiscountCodeCreate, DiscountCodeOut,
    DiscountCodeUpdate, GameIn, GameOut, GameUpdate, KpiOut, LedgerCheckOut,
    RankingOut, TransactionSummaryOut, UserOut, WalletTransactionOut,
)
from gameshop.services import catalog, coupons, reports
from gameshop.services import wallet as wallet_service

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _customer(db, user_id: int) -> User:
    # Wallet reports are only exposed for regular customers
    user = db.get(User, user_id)
    if not user or user.role != Role.USER:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# ---- games / categories -----------------------------------------------------

@router.get("/games", response_model=List[GameOut])
def admin_games():
    with SessionLocal() as db:
        return catalog.list_all_games(db)


@router.post("/games", response_model=GameOut, status_code=201)
def admin_create_game(payload: GameIn):
    with SessionLocal() as db:
        return catalog.create_game(db, payload)


@router.get("/games/{game_id}", response_model=GameOut)
def admin_get_game(game_id: int):
    with SessionLocal() as db:
        return catalog.get_game(db, game_id)


@router.put("/games/{game_id}", response_model=GameOut)
def admin_update_game(game_id: int, payload: GameUpdate):
    with SessionLocal() as db:
        return catalog.update_game(db, game_id, payload)


@router.delete("/games/{game_id}")
def admin_delete_game(game_id: int):
    with SessionLocal() as db:
        catalog.delete_game(db, game_id)
    return {"ok": True}


@router.post("/categories", response_model=CategoryOut, status_code=201)
def admin_create_category(payload: CategoryIn):
    with SessionLocal() as db:
        return catalog.create_category(db, payload.name)


# ---- discount codes ---------------------------------------------------------

@router.get("/discount-codes", response_model=List[DiscountCodeOut])
def list_discount_codes():
    with SessionLocal() as db:
        return coupons.list_codes(db)


@router.get("/discount-codes/{code_id}", response_model=DiscountCodeOut)
def get_discount_code(code_id: int):
    with SessionLocal() as db:
        return coupons.get_code(db, code_id)


@router.post("/discount-codes", response_model=DiscountCodeOut, status_code=201)
def create_discount_code(payload: DiscountCodeCreate):
    with SessionLocal() as db:
        return coupons.create_code(db, payload)


@router.put("/discount-codes/{code_id}")
def update_discount_code(code_id: int, payload: DiscountCodeUpdate):
    return coupons.update_code(code_id, payload)


@router.delete("/discount-codes/{code_id}")
def delete_discount_code(code_id: int):
    coupons.delete_code(code_id)
    return {"ok": True}


# ---- users / wallet ledger --------------------------------------------------

@router.get("/users", response_model=List[UserOut])
def list_users(limit: int = Query(50, ge=1, le=200), offset: int = Query(0, ge=0)):
    with SessionLocal() as db:
        return db.execute(select(User).order_by(User.id).limit(limit).offset(offset)).scalars().all()


@router.put("/users/{user_id}", response_model=UserOut)
def update_user(user_id: int, payload: AdminUserUpdate):
    with SessionLocal() as db:
        user = db.get(User, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(user, field, value)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise HTTPException(status_code=409, detail="username or email already taken")
        db.refresh(user)
        return user


@router.get("/users/{user_id}/transactions", response_model=List[WalletTransactionOut])
def user_transactions(user_id: int):
    with SessionLocal() as db:
        _customer(db, user_id)
        return wallet_service.list_transactions(db, user_id, settings.transactions_page_limit)


@router.get("/users/{user_id}/transactions/summary", response_model=TransactionSummaryOut)
def user_transactions_summary(user_id: int):
    with SessionLocal() as db:
        _customer(db, user_id)
        return wallet_service.summarize_transactions(db, user_id)


@router.get("/users/{user_id}/ledger/verify", response_model=LedgerCheckOut)
def verify_user_ledger(user_id: int):
    with SessionLocal() as db:
        return wallet_service.replay_ledger(db, user_id)


# ---- reporting --------------------------------------------------------------

@router.get("/rankings/top", response_model=RankingOut)
def admin_rankings(
    start: Optional[date] = None,
    end: Optional[date] = None,
    sort: Literal["qty", "revenue"] = "qty",
    limit: int = Query(100, ge=1, le=100),
):
    with SessionLocal() as db:
        rows = reports.top_games(db, start, end, sort, limit, include_unsold=False)
    return {
        "data": rows,
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "sort": sort,
    }


@router.get("/rankings/kpis", response_model=KpiOut)
def admin_kpis(start: Optional[date] = None, end: Optional[date] = None):
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="Invalid date range")
    with SessionLocal() as db:
        kpis = reports.get_kpis(db, start, end)
    return KpiOut(
        start=start.isoformat() if start else None,
        end=end.isoformat() if end else None,
        **kpis,
    )
