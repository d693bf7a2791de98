from typing import List

from fastapi import APIRouter, Depends

from gameshop.auth import Identity, get_identity
from gameshop.config import settings
from gameshop.db import SessionLocal
from gameshop.schemas import BalanceOut, TopUpRequest, WalletTransactionOut
from gameshop.services import wallet as wallet_service
from gameshop.services.uow import UnitOfWork

router = APIRouter(prefix="/wallet", tags=["wallet"])


@router.get("", response_model=BalanceOut)
def balance(identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return {"balance": wallet_service.get_balance(db, identity.user_id)}


@router.post("/topup", response_model=BalanceOut)
def topup(payload: TopUpRequest, identity: Identity = Depends(get_identity)):
    with UnitOfWork() as uow:
        return wallet_service.top_up(uow, identity.user_id, payload.amount)


@router.get("/transactions", response_model=List[WalletTransactionOut])
def transactions(identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return wallet_service.list_transactions(db, identity.user_id, settings.transactions_page_limit)
