"""
Coupon handling

Codes are single-use and consumed when the checkout intent is built, before
the payment outcome is known. A failed payment does not return the coupon.
"""
import logging
from decimal import Decimal
from typing import List

from storefront.errors import Errors
from storefront.models.coupon import Coupon
from storefront.providers.base import quantize_amount
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)

MIN_DISCOUNT_PERCENT = 1
MAX_DISCOUNT_PERCENT = 100


def normalize_code(code) -> str:
    return (code or "").strip().upper()


def apply_discount(price, discount_percent: int) -> Decimal:
    """round(price * (1 - percent / 100), 2)"""
    factor = Decimal(1) - Decimal(discount_percent) / Decimal(100)
    return quantize_amount(Decimal(str(price)) * factor)


class CouponService:
    def __init__(self, store: PrivilegedStore) -> None:
        self.store = store

    def redeem(self, code: str, user_id: str) -> Coupon:
        """
        Look up an unused coupon and mark it used by `user_id`.

        Raises INVALID_COUPON when the code is unknown, already used, or was
        consumed by a concurrent checkout between lookup and update.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise Errors.invalid_coupon()

        coupon = self.store.find_unused_coupon(normalized)
        if coupon is None:
            logger.info(f"[Coupon] Rejected code={normalized}")
            raise Errors.invalid_coupon(normalized)

        if not self.store.consume_coupon(coupon.id, user_id):
            logger.warning(f"[Coupon] Lost consume race: code={normalized}")
            raise Errors.invalid_coupon(normalized)

        logger.info(f"[Coupon] Consumed code={normalized} discount={coupon.discount_percent}%")
        return coupon

    # ===== Admin =====

    def list_coupons(self) -> List[Coupon]:
        return self.store.list_coupons()

    def create_coupon(self, code: str, discount_percent: int) -> Coupon:
        normalized = normalize_code(code)
        if not normalized:
            raise Errors.validation({"field": "code", "reason": "required"})
        if not MIN_DISCOUNT_PERCENT <= discount_percent <= MAX_DISCOUNT_PERCENT:
            raise Errors.validation({"field": "discount_percent", "reason": "must be between 1 and 100"})

        coupon = self.store.create_coupon(normalized, discount_percent)
        if coupon is None:
            raise Errors.conflict({"field": "code", "reason": "already exists"})
        logger.info(f"[Admin] Coupon created: code={normalized} discount={discount_percent}%")
        return coupon

    def delete_coupon(self, coupon_id: str) -> None:
        if not self.store.delete_coupon(coupon_id):
            raise Errors.not_found("coupon")
        logger.info(f"[Admin] Coupon deleted: id={coupon_id}")
