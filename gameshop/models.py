# gameshop/models.py
import enum

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Enum, ForeignKey, Integer,
    Numeric, String, Text, UniqueConstraint, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Currency columns: exact decimals, two places
Money = Numeric(12, 2)


class Role(str, enum.Enum):
    USER = "USER"
    ADMIN = "ADMIN"

class AccountStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

class GameStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"

class DiscountType(str, enum.Enum):
    PERCENT = "PERCENT"
    AMOUNT = "AMOUNT"

class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"

class WalletTxType(str, enum.Enum):
    TOPUP = "TOPUP"
    PURCHASE = "PURCHASE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String(64), nullable=False, unique=True)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role, name="user_role"), nullable=False, default=Role.USER)
    status = Column(Enum(AccountStatus, name="account_status"), nullable=False, default=AccountStatus.ACTIVE)
    # Cached projection of wallet_transactions; only services.wallet writes it
    wallet_balance = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("wallet_balance >= 0", name="users_wallet_nonneg"),
    )

    sessions = relationship("AuthSession", back_populates="user")


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_token = Column(String(128), nullable=False, unique=True)
    issued_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(64), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    user = relationship("User", back_populates="sessions")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    price = Column(Money, nullable=False)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True)
    description = Column(Text, nullable=True)
    status = Column(Enum(GameStatus, name="game_status"), nullable=False, default=GameStatus.ACTIVE)
    released_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("price >= 0", name="games_price_nonneg"),
    )

    category = relationship("Category")


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    qty = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="cart_user_game_unique"),
        CheckConstraint("qty >= 1", name="cart_qty_positive"),
    )


class DiscountCode(Base):
    __tablename__ = "discount_codes"

    id = Column(Integer, primary_key=True)
    code = Column(String(64), nullable=False, unique=True)
    description = Column(String(255), nullable=True)
    discount_type = Column(Enum(DiscountType, name="discount_type"), nullable=False)
    discount_value = Column(Money, nullable=False)
    max_uses = Column(Integer, nullable=True)  # NULL = unlimited
    per_user_limit = Column(Integer, nullable=False, default=1)
    used_count = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)
    start_at = Column(DateTime(timezone=True), nullable=True)
    end_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("discount_value > 0", name="dc_value_positive"),
        CheckConstraint("per_user_limit >= 1", name="dc_per_user_limit_min"),
        CheckConstraint("used_count >= 0", name="dc_used_count_nonneg"),
        CheckConstraint("max_uses IS NULL OR max_uses >= 0", name="dc_max_uses_nonneg"),
    )

    redemptions = relationship("CodeRedemption", back_populates="code")


class CodeRedemption(Base):
    __tablename__ = "code_redemptions"

    id = Column(Integer, primary_key=True)
    code_id = Column(Integer, ForeignKey("discount_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    code = relationship("DiscountCode", back_populates="redemptions")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    total_before_discount = Column(Money, nullable=False)
    discount_amount = Column(Money, nullable=False, default=0)
    total_paid = Column(Money, nullable=False)
    status = Column(Enum(OrderStatus, name="order_status"), nullable=False, default=OrderStatus.PENDING)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("total_paid >= 0", name="orders_total_nonneg"),
        CheckConstraint("discount_amount >= 0", name="orders_discount_nonneg"),
    )

    items = relationship("OrderItem", back_populates="order")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    unit_price = Column(Money, nullable=False)  # snapshot at purchase time
    qty = Column(Integer, nullable=False)
    subtotal = Column(Money, nullable=False)

    __table_args__ = (
        CheckConstraint("qty >= 1", name="order_items_qty_positive"),
    )

    order = relationship("Order", back_populates="items")


class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(Enum(WalletTxType, name="wallet_tx_type"), nullable=False)
    amount = Column(Money, nullable=False)  # positive magnitude
    balance_after = Column(Money, nullable=False)
    ref_order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    note = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="wallet_tx_amount_positive"),
        CheckConstraint("balance_after >= 0", name="wallet_tx_balance_nonneg"),
    )


class UserGame(Base):
    __tablename__ = "user_games"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False)
    purchased_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "game_id", name="user_games_unique"),
    )
