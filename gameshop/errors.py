# gameshop/errors.py
from fastapi import HTTPException


class ShopError(HTTPException):
    """
    Domain rejection with a fixed HTTP status and a machine-checkable reason.
    Body: {"detail": {"reason": "...", "message": "..."}}
    """
    status_code = 400
    reason = "SHOP_ERROR"
    message = "request rejected"

    def __init__(self, message: str | None = None):
        self.message = message or type(self).message
        super().__init__(
            status_code=type(self).status_code,
            detail={"reason": self.reason, "message": self.message},
        )


# --- coupon evaluation -------------------------------------------------------

class CouponRejected(ShopError):
    reason = "COUPON_REJECTED"
    message = "coupon rejected"

class CouponNotFound(CouponRejected):
    status_code = 404
    reason = "COUPON_NOT_FOUND"
    message = "coupon not found"

class UnknownCouponCode(CouponRejected):
    # Same reason as CouponNotFound, but a checkout failure is always a 400
    reason = "COUPON_NOT_FOUND"
    message = "coupon not found"

class CouponInactive(CouponRejected):
    reason = "COUPON_INACTIVE"
    message = "coupon inactive"

class CouponNotStarted(CouponRejected):
    reason = "COUPON_NOT_STARTED"
    message = "coupon not started"

class CouponExpired(CouponRejected):
    reason = "COUPON_EXPIRED"
    message = "coupon expired"

class CouponExhausted(CouponRejected):
    reason = "COUPON_EXHAUSTED"
    message = "coupon exhausted"

class CouponUserLimitReached(CouponRejected):
    reason = "USER_LIMIT_REACHED"
    message = "user limit reached"

class SubtotalTooLow(CouponRejected):
    reason = "SUBTOTAL_TOO_LOW"
    message = "subtotal too low"


# --- checkout / purchase -----------------------------------------------------

class ItemsNotFound(ShopError):
    reason = "ITEMS_NOT_FOUND"
    message = "items not found"

class GameUnavailable(ShopError):
    reason = "GAME_UNAVAILABLE"
    message = "game not available"

class AlreadyOwned(ShopError):
    status_code = 409
    reason = "ALREADY_OWNED"
    message = "game already owned"

class InsufficientBalance(ShopError):
    status_code = 402
    reason = "INSUFFICIENT_BALANCE"
    message = "insufficient wallet balance"

class UserNotFound(ShopError):
    status_code = 404
    reason = "USER_NOT_FOUND"
    message = "user not found"


# --- admin / catalog ---------------------------------------------------------

class NotFound(ShopError):
    status_code = 404
    reason = "NOT_FOUND"
    message = "not found"

class CodeAlreadyExists(ShopError):
    status_code = 409
    reason = "CODE_ALREADY_EXISTS"
    message = "code already exists"

class CodeInUse(ShopError):
    reason = "CODE_IN_USE"
    message = "cannot delete a code that has been used"

class Conflict(ShopError):
    status_code = 409
    reason = "CONFLICT"
    message = "resource already exists"

class InvalidDiscount(ShopError):
    reason = "INVALID_DISCOUNT"
    message = "percent discounts must be between 1 and 100"

class InvalidAmount(ShopError):
    reason = "INVALID_AMOUNT"
    message = "amount must be positive with at most two decimal places"
