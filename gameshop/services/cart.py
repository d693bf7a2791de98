# gameshop/services/cart.py
from typing import Dict, List

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from gameshop.errors import GameUnavailable, NotFound
from gameshop.models import CartItem, Game, GameStatus
from gameshop.money import round2
from gameshop.services.uow import dialect_insert

# Cart writes are last-writer-wins per row; only checkout takes locks.


def _line(item: CartItem, game: Game) -> Dict:
    return {
        "item_id": item.id,
        "game_id": game.id,
        "title": game.title,
        "price": round2(game.price),
        "qty": item.qty,
    }


def _get_line(db: Session, user_id: int, **where) -> Dict | None:
    stmt = select(CartItem, Game).join(Game, Game.id == CartItem.game_id).where(CartItem.user_id == user_id)
    for column, value in where.items():
        stmt = stmt.where(getattr(CartItem, column) == value)
    row = db.execute(stmt).first()
    return _line(*row) if row else None


def list_cart(db: Session, user_id: int) -> List[Dict]:
    rows = db.execute(
        select(CartItem, Game)
        .join(Game, Game.id == CartItem.game_id)
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.id.desc())
    ).all()
    return [_line(item, game) for item, game in rows]


def add_to_cart(db: Session, user_id: int, game_id: int, qty: int) -> Dict:
    """Upsert: adding a game already in the cart bumps its qty."""
    game = db.get(Game, game_id)
    if not game or game.status != GameStatus.ACTIVE:
        raise GameUnavailable()

    stmt = dialect_insert(db, CartItem).values(user_id=user_id, game_id=game_id, qty=qty)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "game_id"],
        set_={"qty": CartItem.qty + stmt.excluded.qty},
    )
    db.execute(stmt)
    db.commit()
    return _get_line(db, user_id, game_id=game_id)


def update_qty(db: Session, user_id: int, item_id: int, qty: int) -> Dict:
    item = db.execute(
        select(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
    ).scalar_one_or_none()
    if not item:
        raise NotFound("item not found")
    item.qty = qty
    db.commit()
    return _get_line(db, user_id, id=item_id)


def remove_item(db: Session, user_id: int, item_id: int) -> None:
    db.execute(delete(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id))
    db.commit()
