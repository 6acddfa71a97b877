"""
Webhook Router

POST /mp-webhook     Mercado Pago notifications (signed when a secret is set)
POST /paypal-webhook PayPal capture, called after the buyer returns
POST /payt-postback  Legacy processor postback (form or JSON)

Out-of-interest outcomes answer 200 so processors do not retry them.
Blocking work runs in the threadpool: a stalled processor call holds only
its own request.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from storefront.constants import CAPTURE_RATE_LIMIT, WEBHOOK_RATE_LIMIT
from storefront.dependencies import (
    get_mercadopago_provider,
    get_mp_signature_verifier,
    get_paypal_provider,
    get_privileged_store,
)
from storefront.errors import Errors
from storefront.providers.mercadopago import MercadoPagoProvider, MercadoPagoSignatureVerifier
from storefront.providers.paypal import PayPalProvider
from storefront.rate_limit import limiter
from storefront.schemas.webhooks import CaptureRequest, CaptureResponse
from storefront.services.postback import Postback, PostbackService
from storefront.services.reconciliation import (
    CaptureReconciler,
    NotificationReconciler,
    PaymentNotification,
)
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


def _json_or_none(raw: bytes) -> Optional[dict]:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    return parsed if isinstance(parsed, dict) else None


@router.post("/mp-webhook")
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def mp_webhook(
    request: Request,
    store: PrivilegedStore = Depends(get_privileged_store),
    provider: MercadoPagoProvider = Depends(get_mercadopago_provider),
    verifier: Optional[MercadoPagoSignatureVerifier] = Depends(get_mp_signature_verifier),
):
    """
    Mercado Pago notification.

    The body is read raw; status is never taken from it, only from the
    payment fetched back from Mercado Pago.
    """
    raw_body = await request.body()
    notification = PaymentNotification.from_request(
        request.query_params, _json_or_none(raw_body), request.headers
    )
    logger.info(f"[MP Webhook] Received: event={notification.event} payment_id={notification.payment_id}")
    # Payment lookup and row updates block; keep them off the event loop
    return await run_in_threadpool(NotificationReconciler(store, provider, verifier).handle, notification)


@router.post("/paypal-webhook", response_model=CaptureResponse, response_model_exclude_none=True)
@limiter.limit(CAPTURE_RATE_LIMIT)
def paypal_webhook(
    request: Request,
    data: CaptureRequest,
    store: PrivilegedStore = Depends(get_privileged_store),
    provider: PayPalProvider = Depends(get_paypal_provider),
):
    """Capture a PayPal order; safe to repeat for the same order."""
    logger.info(f"[PayPal Capture] order={data.order_id}")
    return CaptureReconciler(store, provider).capture(data.order_id)


@router.post("/payt-postback")
@limiter.limit(WEBHOOK_RATE_LIMIT)
async def payt_postback(
    request: Request,
    store: PrivilegedStore = Depends(get_privileged_store),
):
    """Legacy postback, acknowledged with 200 whenever it parses."""
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        form = await request.form()
        payload = dict(form)
    else:
        payload = _json_or_none(await request.body())
        if payload is None:
            raise Errors.validation({"reason": "Unreadable postback body"})

    postback = Postback.parse(payload)
    return await run_in_threadpool(PostbackService(store).apply, postback)
