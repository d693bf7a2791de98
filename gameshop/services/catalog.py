# gameshop/services/catalog.py
import logging
from typing import Dict, List

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gameshop.errors import Conflict, NotFound
from gameshop.models import CartItem, Category, Game, GameStatus, OrderItem, UserGame
from gameshop.schemas import GameIn, GameUpdate

logger = logging.getLogger(__name__)


def game_out(game: Game, category_name: str | None = None) -> Dict:
    return {
        "id": game.id,
        "title": game.title,
        "price": game.price,
        "category_id": game.category_id,
        "category_name": category_name,
        "description": game.description,
        "status": game.status,
        "released_at": game.released_at,
    }


def _games(db: Session, *where) -> List[Dict]:
    rows = db.execute(
        select(Game, Category.name)
        .outerjoin(Category, Category.id == Game.category_id)
        .where(*where)
        .order_by(Game.id.desc())
    ).all()
    return [game_out(g, name) for g, name in rows]


def list_store_games(db: Session) -> List[Dict]:
    return _games(db, Game.status == GameStatus.ACTIVE)


def list_all_games(db: Session) -> List[Dict]:
    return _games(db)


def get_game(db: Session, game_id: int) -> Dict:
    found = _games(db, Game.id == game_id)
    if not found:
        raise NotFound("game not found")
    return found[0]


def create_game(db: Session, payload: GameIn) -> Dict:
    game = Game(**payload.model_dump())
    db.add(game)
    db.commit()
    logger.info("game %s created", game.id)
    return get_game(db, game.id)


def update_game(db: Session, game_id: int, patch: GameUpdate) -> Dict:
    # Order items keep their own unit_price snapshot; nothing else to touch
    game = db.get(Game, game_id)
    if not game:
        raise NotFound("game not found")
    for field, value in patch.model_dump(exclude_unset=True).items():
        setattr(game, field, value)
    db.commit()
    return get_game(db, game_id)


def delete_game(db: Session, game_id: int) -> None:
    game = db.get(Game, game_id)
    if not game:
        raise NotFound("game not found")
    # order_items keep a hard reference; SQLite would not enforce it
    sold = db.execute(select(OrderItem.id).where(OrderItem.game_id == game_id).limit(1)).first()
    if sold:
        raise Conflict("game has orders; set it INACTIVE instead")
    db.execute(delete(CartItem).where(CartItem.game_id == game_id))
    db.delete(game)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("game has orders; set it INACTIVE instead")


def list_categories(db: Session) -> List[Category]:
    return db.execute(select(Category).order_by(Category.name)).scalars().all()


def create_category(db: Session, name: str) -> Category:
    category = Category(name=name.strip())
    db.add(category)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict("category already exists")
    db.refresh(category)
    return category


def list_owned_games(db: Session, user_id: int) -> List[Dict]:
    rows = db.execute(
        select(Game.id, Game.title, UserGame.purchased_at)
        .join(UserGame, UserGame.game_id == Game.id)
        .where(UserGame.user_id == user_id)
        .order_by(UserGame.purchased_at.desc(), UserGame.id.desc())
    ).all()
    return [{"id": r.id, "title": r.title, "purchased_at": r.purchased_at} for r in rows]
