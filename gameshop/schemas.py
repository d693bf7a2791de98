from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from gameshop.models import AccountStatus, DiscountType, GameStatus, OrderStatus, Role, WalletTxType


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ---- auth -------------------------------------------------------------------

class RegisterIn(BaseModel):
    username: str = Field(..., min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)

class LoginIn(BaseModel):
    username_or_email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: Role
    status: AccountStatus
    wallet_balance: Decimal

class UserSelfUpdate(BaseModel):
    # Profile fields only; role, status and wallet are not the user's to change
    username: Optional[str] = Field(default=None, min_length=3, max_length=64)
    email: Optional[EmailStr] = None

class AdminUserUpdate(BaseModel):
    # No wallet_balance here: balances only move through the wallet ledger
    username: Optional[str] = Field(default=None, min_length=3, max_length=64)
    email: Optional[EmailStr] = None
    role: Optional[Role] = None
    status: Optional[AccountStatus] = None


# ---- catalog ----------------------------------------------------------------

class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

class CategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str

class GameIn(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    price: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    category_id: Optional[int] = None
    description: Optional[str] = None
    status: GameStatus = GameStatus.ACTIVE
    released_at: Optional[datetime] = None

class GameUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    category_id: Optional[int] = None
    description: Optional[str] = None
    status: Optional[GameStatus] = None
    released_at: Optional[datetime] = None

class GameOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    price: Decimal
    category_id: Optional[int] = None
    category_name: Optional[str] = None
    description: Optional[str] = None
    status: GameStatus
    released_at: Optional[datetime] = None

class OwnedGameOut(BaseModel):
    id: int
    title: str
    purchased_at: Optional[datetime] = None


# ---- cart / checkout --------------------------------------------------------

class CartAdd(BaseModel):
    game_id: int = Field(..., gt=0)
    qty: int = Field(default=1, gt=0)

class CartUpdate(BaseModel):
    qty: int = Field(..., gt=0)

class CartLineOut(BaseModel):
    item_id: int
    game_id: int
    title: str
    price: Decimal
    qty: int

class CouponPreviewIn(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    subtotal: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)

class CouponPreviewOut(BaseModel):
    code: str
    amount: Decimal

class CheckoutRequest(BaseModel):
    item_ids: List[int] = Field(..., min_length=1)
    coupon_code: Optional[str] = Field(default=None, max_length=64)

    @field_validator("item_ids")
    @classmethod
    def positive_unique_ids(cls, v: List[int]) -> List[int]:
        if any(i <= 0 for i in v):
            raise ValueError("item ids must be positive")
        return sorted(set(v))

    @field_validator("coupon_code")
    @classmethod
    def blank_code_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None

class CheckoutOut(BaseModel):
    order_id: int
    status: OrderStatus
    total: Decimal

class PurchaseRequest(BaseModel):
    game_id: int = Field(..., gt=0)
    qty: int = Field(default=1, gt=0)

class PurchaseOut(BaseModel):
    order_id: int
    balance: Decimal


# ---- wallet -----------------------------------------------------------------

class TopUpRequest(BaseModel):
    # Range and precision are checked by wallet.top_up (400 INVALID_AMOUNT)
    amount: Decimal = Field(..., max_digits=12)

class BalanceOut(BaseModel):
    balance: Decimal

class WalletTransactionOut(BaseModel):
    id: int
    type: WalletTxType
    amount: Decimal
    balance_after: Decimal
    created_at: Optional[datetime] = None
    note: Optional[str] = None
    ref_order_id: Optional[int] = None
    game_title: Optional[str] = None

class TransactionSummaryOut(BaseModel):
    total_count: int
    total_topup: Decimal
    total_purchase: Decimal
    avg_amount: Decimal

class LedgerCheckOut(BaseModel):
    user_id: int
    balance: Decimal
    replayed_balance: Decimal
    consistent: bool
    first_mismatch_id: Optional[int] = None


# ---- discount codes (admin) -------------------------------------------------

class DiscountCodeCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=255)
    discount_type: DiscountType
    discount_value: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    max_uses: Optional[int] = Field(default=None, ge=0)
    per_user_limit: Optional[int] = Field(default=1, ge=1)
    active: bool = True
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def trimmed_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("code is required")
        return v

    @field_validator("start_at", "end_at")
    @classmethod
    def utc_window(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

    @model_validator(mode="after")
    def percent_range(self):
        if self.discount_type == DiscountType.PERCENT and not (1 <= self.discount_value <= 100):
            raise ValueError("percent 1-100")
        return self

class DiscountCodeUpdate(BaseModel):
    code: Optional[str] = Field(default=None, min_length=1, max_length=64)
    description: Optional[str] = Field(default=None, max_length=255)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    max_uses: Optional[int] = Field(default=None, ge=0)
    per_user_limit: Optional[int] = Field(default=None, ge=1)
    active: Optional[bool] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def trimmed_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("code must not be blank")
        return v

    @field_validator("start_at", "end_at")
    @classmethod
    def utc_window(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _utc(v)

class DiscountCodeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal
    max_uses: Optional[int] = None
    per_user_limit: int
    used_count: int
    active: bool
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None


# ---- reports ----------------------------------------------------------------

class RankingRow(BaseModel):
    rank: int
    game_id: int
    title: str
    qty: int
    revenue: Decimal

class RankingOut(BaseModel):
    data: List[RankingRow]
    start: Optional[str] = None
    end: Optional[str] = None
    sort: Literal["qty", "revenue"]

class TopSeller(BaseModel):
    game_id: int
    title: str
    qty: int
    revenue: Decimal

class KpiOut(BaseModel):
    total_revenue: Decimal
    orders_count: int
    avg_order_value: Decimal
    total_sales: int
    top_seller: Optional[TopSeller] = None
    start: Optional[str] = None
    end: Optional[str] = None
