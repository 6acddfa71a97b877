"""
Checkout Intent Builder

Provider-agnostic: resolves the target, creates or resets pending purchase
rows for what the buyer does not own yet, applies a coupon, and asks the
injected PaymentProvider for a hosted checkout URL.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from storefront.configuration import Settings
from storefront.constants import (
    MAX_REFERENCE_LENGTH,
    PURCHASE_RETURN_FAILURE,
    PURCHASE_RETURN_PENDING,
    PURCHASE_RETURN_SUCCESS,
)
from storefront.errors import Errors
from storefront.providers.base import (
    CallbackUrls,
    IntentRequest,
    PaymentProvider,
    ProviderError,
    quantize_amount,
)
from storefront.references import PurchaseReference
from storefront.services.coupons import CouponService, apply_discount
from storefront.stores import PrivilegedStore, UserScopedStore
from storefront.utils.masking import mask_email

logger = logging.getLogger(__name__)

ALREADY_OWNED_PRODUCT = "You already purchased this effect!"
ALREADY_OWNED_BUNDLE = "You already own all effects in this combo!"


@dataclass
class CheckoutResult:
    url: str
    purchase_ids: List[str]
    reference: PurchaseReference
    provider_reference: Optional[str]
    amount: Decimal
    currency: str


def callback_urls(site_url: str) -> CallbackUrls:
    root = site_url.rstrip("/")
    return CallbackUrls(
        success=f"{root}/?purchase={PURCHASE_RETURN_SUCCESS}",
        failure=f"{root}/?purchase={PURCHASE_RETURN_FAILURE}",
        pending=f"{root}/?purchase={PURCHASE_RETURN_PENDING}",
    )


class CheckoutService:
    def __init__(
        self,
        user_store: UserScopedStore,
        store: PrivilegedStore,
        provider: PaymentProvider,
        settings: Settings,
    ) -> None:
        self.user_store = user_store
        self.store = store
        self.provider = provider
        self.settings = settings
        self.coupons = CouponService(store)

    def create(
        self,
        user_id: str,
        email: Optional[str] = None,
        product_id: Optional[str] = None,
        bundle_id: Optional[str] = None,
        coupon_code: Optional[str] = None,
    ) -> CheckoutResult:
        if bundle_id:
            title, description, price, product_ids = self._resolve_bundle(user_id, bundle_id)
        elif product_id:
            title, description, price, product_ids = self._resolve_product(user_id, product_id)
        else:
            raise Errors.validation({"reason": "productId or bundleId is required"})

        purchase_ids = []
        for pid in product_ids:
            purchase = self.store.reset_or_create_pending(user_id, pid, source=f"checkout:{self.provider.name}")
            if purchase is None:
                # Completed by a reconciler after the ownership check
                continue
            purchase_ids.append(purchase.id)
        if not purchase_ids:
            raise Errors.already_owned(ALREADY_OWNED_BUNDLE if bundle_id else ALREADY_OWNED_PRODUCT)

        reference = PurchaseReference.of(purchase_ids)
        if len(reference.serialize()) > MAX_REFERENCE_LENGTH:
            logger.warning(
                f"[Checkout] Reference too long for {self.provider.name}: "
                f"items={len(purchase_ids)} length={len(reference.serialize())}"
            )
            raise Errors.validation({"reason": "Too many items in one checkout", "items": len(purchase_ids)})

        if coupon_code:
            coupon = self.coupons.redeem(coupon_code, user_id)
            price = apply_discount(price, coupon.discount_percent)

        amount = self.provider.convert(price)
        logger.info(
            f"[Checkout] provider={self.provider.name} user={user_id} buyer={mask_email(email)} "
            f"items={len(purchase_ids)} price={quantize_amount(price)} "
            f"charge={amount} {self.provider.currency}"
        )

        try:
            intent = self.provider.create_intent(
                IntentRequest(
                    reference=reference,
                    title=title,
                    description=description,
                    amount=amount,
                    currency=self.provider.currency,
                    callbacks=callback_urls(self.settings.SITE_URL),
                    payer_email=email,
                )
            )
        except ProviderError as e:
            # Pending rows and a consumed coupon stay as they are
            logger.error(f"[Checkout] {self.provider.name} intent failed: reference={reference} error={e}")
            raise Errors.upstream(self.provider.name, e.to_details())

        self.store.set_external_reference(purchase_ids, intent.provider_reference or reference.serialize())
        return CheckoutResult(
            url=intent.url,
            purchase_ids=purchase_ids,
            reference=reference,
            provider_reference=intent.provider_reference,
            amount=amount,
            currency=self.provider.currency,
        )

    def _resolve_product(self, user_id: str, product_id: str):
        product = self.user_store.get_product(product_id)
        if product is None:
            raise Errors.not_found("product")
        if self.store.has_completed_purchase(user_id, product.id):
            raise Errors.already_owned(ALREADY_OWNED_PRODUCT)
        return product.name, product.description or product.name, product.price, [product.id]

    def _resolve_bundle(self, user_id: str, bundle_id: str):
        bundle = self.user_store.get_bundle(bundle_id)
        if bundle is None:
            raise Errors.not_found("bundle")

        product_ids = self.user_store.bundle_product_ids(bundle.id)
        if not product_ids:
            raise Errors.not_found("bundle_products")

        owned = self.store.owned_product_ids(user_id, product_ids)
        remaining = [pid for pid in product_ids if pid not in owned]
        if not remaining:
            raise Errors.already_owned(ALREADY_OWNED_BUNDLE)
        if owned:
            logger.info(f"[Checkout] Bundle {bundle.id}: {len(owned)} of {len(product_ids)} already owned")

        # Bundle price, never the sum of its parts
        title = f"Combo: {bundle.name}"
        return title, title, bundle.price, remaining
