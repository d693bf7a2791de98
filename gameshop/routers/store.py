from datetime import date
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from gameshop.auth import Identity, get_identity
from gameshop.db import SessionLocal
from gameshop.schemas import (
    CategoryOut, GameOut, OwnedGameOut, PurchaseOut, PurchaseRequest, RankingOut,
)
from gameshop.services import catalog, reports
from gameshop.services.purchases import purchase_game
from gameshop.services.uow import UnitOfWork

router = APIRouter()


@router.get("/categories", response_model=List[CategoryOut], tags=["catalog"])
def categories():
    with SessionLocal() as db:
        return catalog.list_categories(db)


@router.get("/games", response_model=List[GameOut], tags=["catalog"])
def store_games():
    with SessionLocal() as db:
        return catalog.list_store_games(db)


@router.get("/games/{game_id}", response_model=GameOut, tags=["catalog"])
def game_detail(game_id: int):
    with SessionLocal() as db:
        return catalog.get_game(db, game_id)


@router.post("/store/purchase", response_model=PurchaseOut, tags=["store"])
def buy_now(payload: PurchaseRequest, identity: Identity = Depends(get_identity)):
    with UnitOfWork() as uow:
        return purchase_game(uow, identity.user_id, payload)


@router.get("/me/games", response_model=List[OwnedGameOut], tags=["store"])
def my_games(identity: Identity = Depends(get_identity)):
    with SessionLocal() as db:
        return catalog.list_owned_games(db, identity.user_id)


@router.get("/rankings/top", response_model=RankingOut, tags=["rankings"])
def public_rankings(
    start: Optional[date] = None,
    end: Optional[date] = None,
    sort: Literal["qty", "revenue"] = "qty",
    limit: int = Query(100, ge=1, le=10000),
):
    with SessionLocal() as db:
        rows = reports.top_games(db, start, end, sort, limit, include_unsold=True)
    return {
        "data": rows,
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "sort": sort,
    }
