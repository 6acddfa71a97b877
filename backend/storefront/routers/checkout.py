"""
Checkout Router

POST /create-checkout         Mercado Pago preference (redirect)
POST /create-checkout-paypal  PayPal order (approve + capture)
"""
import logging

from fastapi import APIRouter, Depends, Request

from storefront.configuration import get_settings
from storefront.constants import CHECKOUT_RATE_LIMIT
from storefront.dependencies import (
    AuthenticatedUser,
    get_current_user,
    get_mercadopago_provider,
    get_paypal_provider,
    get_privileged_store,
    get_user_store,
)
from storefront.providers.mercadopago import MercadoPagoProvider
from storefront.providers.paypal import PayPalProvider
from storefront.rate_limit import limiter
from storefront.schemas.checkout import (
    CheckoutRequest,
    MercadoPagoCheckoutResponse,
    PayPalCheckoutResponse,
)
from storefront.services.checkout import CheckoutResult, CheckoutService
from storefront.stores import PrivilegedStore, UserScopedStore

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["checkout"])


def _purchase_fields(result: CheckoutResult) -> dict:
    """Single product -> purchase_id, bundle -> purchase_ids"""
    if result.reference.is_group:
        return {"purchase_ids": result.purchase_ids}
    return {"purchase_id": result.purchase_ids[0]}


@router.post(
    "/create-checkout",
    response_model=MercadoPagoCheckoutResponse,
    response_model_exclude_none=True,
)
@limiter.limit(CHECKOUT_RATE_LIMIT)
def create_checkout(
    request: Request,
    data: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    user_store: UserScopedStore = Depends(get_user_store),
    store: PrivilegedStore = Depends(get_privileged_store),
    provider: MercadoPagoProvider = Depends(get_mercadopago_provider),
):
    """Create a Mercado Pago preference and return its init_point."""
    service = CheckoutService(user_store, store, provider, settings)
    result = service.create(
        user.id,
        email=user.email,
        product_id=data.product_id,
        bundle_id=data.bundle_id,
        coupon_code=data.coupon_code,
    )
    logger.info(f"[Checkout] Mercado Pago preference ready: reference={result.reference}")
    return MercadoPagoCheckoutResponse(init_point=result.url, **_purchase_fields(result))


@router.post(
    "/create-checkout-paypal",
    response_model=PayPalCheckoutResponse,
    response_model_exclude_none=True,
)
@limiter.limit(CHECKOUT_RATE_LIMIT)
def create_checkout_paypal(
    request: Request,
    data: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    user_store: UserScopedStore = Depends(get_user_store),
    store: PrivilegedStore = Depends(get_privileged_store),
    provider: PayPalProvider = Depends(get_paypal_provider),
):
    """Create a PayPal order and return its approve link."""
    service = CheckoutService(user_store, store, provider, settings)
    result = service.create(
        user.id,
        email=user.email,
        product_id=data.product_id,
        bundle_id=data.bundle_id,
        coupon_code=data.coupon_code,
    )
    logger.info(f"[Checkout] PayPal order ready: order={result.provider_reference} reference={result.reference}")
    return PayPalCheckoutResponse(
        approve_url=result.url,
        order_id=result.provider_reference,
        **_purchase_fields(result),
    )
