# -*- coding: utf-8 -*-
"""
Unit Tests for coupon math and single-use consumption
"""

from decimal import Decimal

import pytest
from storefront.errors import AppError
from storefront.services.coupons import CouponService, apply_discount, normalize_code
from storefront.stores import PrivilegedStore


class TestDiscountMath:
    def test_twenty_percent_off_hundred(self):
        assert apply_discount(Decimal("100"), 20) == Decimal("80.00")

    def test_rounds_half_up_to_cents(self):
        # 19.99 * 0.85 = 16.9915
        assert apply_discount(Decimal("19.99"), 15) == Decimal("16.99")
        # 0.05 * 0.5 = 0.025
        assert apply_discount(Decimal("0.05"), 50) == Decimal("0.03")

    def test_full_discount_is_zero(self):
        assert apply_discount(Decimal("49.90"), 100) == Decimal("0.00")

    def test_code_normalized_upper_case(self):
        assert normalize_code("  save20 ") == "SAVE20"
        assert normalize_code(None) == ""


class TestCouponRedemption:
    def test_redeem_marks_coupon_used(self, db_session, make_user, make_coupon):
        user = make_user()
        coupon = make_coupon("SAVE20", 20)

        redeemed = CouponService(PrivilegedStore(db_session)).redeem("save20", user.id)

        db_session.refresh(coupon)
        assert redeemed.discount_percent == 20
        assert coupon.used is True
        assert coupon.used_by == user.id
        assert coupon.used_at is not None

    def test_second_redeem_fails(self, db_session, make_user, make_coupon):
        user = make_user()
        make_coupon("SAVE20", 20)
        service = CouponService(PrivilegedStore(db_session))
        service.redeem("SAVE20", user.id)

        with pytest.raises(AppError) as exc_info:
            service.redeem("SAVE20", user.id)

        assert exc_info.value.code == "INVALID_COUPON"

    def test_unknown_code_rejected(self, db_session, make_user):
        user = make_user()

        with pytest.raises(AppError) as exc_info:
            CouponService(PrivilegedStore(db_session)).redeem("NOPE", user.id)

        assert exc_info.value.status == 400

    def test_consume_is_conditional_on_unused(self, db_session, make_user, make_coupon):
        """Only one of two racing consumers wins"""
        user = make_user()
        coupon = make_coupon("RACE", 10)
        store = PrivilegedStore(db_session)

        assert store.consume_coupon(coupon.id, user.id) is True
        assert store.consume_coupon(coupon.id, user.id) is False


class TestCouponAdmin:
    def test_create_normalizes_code(self, db_session):
        coupon = CouponService(PrivilegedStore(db_session)).create_coupon("welcome10", 10)

        assert coupon.code == "WELCOME10"
        assert coupon.used is False

    def test_duplicate_code_conflicts(self, db_session, make_coupon):
        make_coupon("WELCOME10", 10)

        with pytest.raises(AppError) as exc_info:
            CouponService(PrivilegedStore(db_session)).create_coupon("Welcome10", 15)

        assert exc_info.value.status == 409

    @pytest.mark.parametrize("percent", [0, 101])
    def test_out_of_range_discount_rejected(self, db_session, percent):
        with pytest.raises(AppError) as exc_info:
            CouponService(PrivilegedStore(db_session)).create_coupon("BAD", percent)

        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_delete_unknown_coupon_is_404(self, db_session):
        with pytest.raises(AppError) as exc_info:
            CouponService(PrivilegedStore(db_session)).delete_coupon("missing")

        assert exc_info.value.status == 404
