# gameshop/services/uow.py
import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from gameshop.db import SessionLocal
from gameshop.errors import UserNotFound
from gameshop.models import CartItem, DiscountCode, Game, User

logger = logging.getLogger(__name__)


def dialect_insert(db: Session, model):
    """INSERT construct that supports ON CONFLICT for the bound dialect."""
    name = db.get_bind().dialect.name
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT inserts not supported on {name}")


class UnitOfWork:
    """
    One session, one transaction:
      - commit on clean exit
      - rollback on ANY exception (also after a failed statement), then re-raise
      - the session is always closed
      - callbacks registered with after_commit run only once the commit succeeded
    Rows that gate a decision are read through the lock_* helpers so the
    write-intent lock is held until commit/rollback.

        with UnitOfWork() as uow:
            user = uow.lock_user(user_id)
            ...
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory
        self.session: Optional[Session] = None
        self._after_commit: List[Callable[[], None]] = []

    def __enter__(self) -> "UnitOfWork":
        self.session = self._session_factory()
        self.session.begin()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
        except Exception:
            logger.exception("commit failed; rolling back")
            self.session.rollback()
            raise
        finally:
            self.session.close()
        if exc_type is None:
            for callback in self._after_commit:
                callback()
        return False

    def after_commit(self, callback: Callable[[], None]) -> None:
        """Defer success-only side effects (metrics, logs) until the data is durable."""
        self._after_commit.append(callback)

    # ---- locked reads -------------------------------------------------------

    def lock_user(self, user_id: int) -> User:
        user = self.session.execute(
            select(User).where(User.id == user_id).with_for_update()
        ).scalar_one_or_none()
        if user is None:
            raise UserNotFound()
        return user

    def lock_game(self, game_id: int) -> Optional[Game]:
        # Shared lock: price and status stay put until commit
        return self.session.execute(
            select(Game).where(Game.id == game_id).with_for_update(read=True)
        ).scalar_one_or_none()

    def lock_cart_lines(self, user_id: int, item_ids: Sequence[int]) -> List[Tuple[CartItem, Game]]:
        """Caller's own cart rows FOR UPDATE, their games FOR SHARE (consistent price)."""
        items = self.session.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id, CartItem.id.in_(list(item_ids)))
            .order_by(CartItem.id)
            .with_for_update()
        ).scalars().all()
        if not items:
            return []

        games = self.session.execute(
            select(Game)
            .where(Game.id.in_([i.game_id for i in items]))
            .order_by(Game.id)
            .with_for_update(read=True)
        ).scalars().all()
        by_id = {g.id: g for g in games}
        return [(item, by_id[item.game_id]) for item in items if item.game_id in by_id]

    def lock_discount_code(self, code: str) -> Optional[DiscountCode]:
        return self.session.execute(
            select(DiscountCode).where(DiscountCode.code == code).with_for_update()
        ).scalar_one_or_none()

    # ---- conflict-aware writes ---------------------------------------------

    def insert_ignore(self, model, rows: Iterable[dict], conflict_cols: Sequence[str]) -> None:
        rows = list(rows)
        if not rows:
            return
        stmt = dialect_insert(self.session, model).values(rows)
        self.session.execute(stmt.on_conflict_do_nothing(index_elements=list(conflict_cols)))
