"""
Confirmation Reconcilers

Turn a processor-reported payment outcome into purchase status writes.
Every write is an idempotent overwrite keyed by purchase id, so replays and
the two variants racing each other converge on the same row state.
"""
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from storefront.constants import MP_PAYMENT_EVENTS
from storefront.errors import Errors
from storefront.models.purchase import PurchaseStatus
from storefront.providers.base import Confirmation, PaymentProvider, ProviderError
from storefront.providers.mercadopago import MercadoPagoSignatureVerifier
from storefront.stores import PrivilegedStore
from storefront.utils.masking import mask_token

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentNotification:
    """One server-to-server notification, as received."""

    event: Optional[str]
    payment_id: Optional[str]
    signed_data_id: Optional[str] = None
    signature: Optional[str] = None
    request_id: Optional[str] = None

    @classmethod
    def from_request(cls, query: Mapping, body: Optional[dict], headers: Mapping) -> "PaymentNotification":
        body = body if isinstance(body, dict) else {}
        data = body.get("data") if isinstance(body.get("data"), dict) else {}

        query_id = query.get("data.id") or query.get("id")
        event = query.get("topic") or query.get("type") or body.get("type") or body.get("action")
        payment_id = query_id or data.get("id")
        return cls(
            event=str(event) if event else None,
            payment_id=str(payment_id) if payment_id else None,
            signed_data_id=query.get("data.id"),
            signature=headers.get("x-signature"),
            request_id=headers.get("x-request-id"),
        )


class NotificationReconciler:
    """Asynchronous callback variant (processor -> server)."""

    source = "mp-webhook"

    def __init__(
        self,
        store: PrivilegedStore,
        provider: PaymentProvider,
        verifier: Optional[MercadoPagoSignatureVerifier],
    ) -> None:
        self.store = store
        self.provider = provider
        self.verifier = verifier

    def handle(self, notification: PaymentNotification) -> dict:
        if self.verifier is not None:
            if not self.verifier.verify(
                notification.signature, notification.request_id, notification.signed_data_id
            ):
                logger.warning(
                    f"[MP Webhook] Signature rejected: payment_id={notification.payment_id} "
                    f"request_id={notification.request_id} signature={mask_token(notification.signature)}"
                )
                raise Errors.auth({"reason": "invalid signature"})

        if notification.event not in MP_PAYMENT_EVENTS:
            logger.info(f"[MP Webhook] Ignored event: {notification.event}")
            return {"received": True}

        if not notification.payment_id:
            raise Errors.validation({"reason": "No payment id"})

        try:
            confirmation = self.provider.confirm(notification.payment_id)
        except ProviderError as e:
            logger.error(f"[MP Webhook] Payment fetch failed: payment_id={notification.payment_id} error={e}")
            raise Errors.upstream(self.provider.name, e.to_details())

        if confirmation.reference is None:
            logger.warning(f"[MP Webhook] Payment {notification.payment_id} has no external_reference")
            return {"received": True}

        # Bundle references carry several ids; each one is its own row
        self._apply(confirmation)
        return {"success": True}

    def _apply(self, confirmation: Confirmation) -> None:
        for purchase_id in confirmation.reference:
            purchase = self.store.set_status(
                purchase_id,
                confirmation.status,
                source=self.source,
                external_reference=confirmation.transaction_id,
            )
            if purchase is None:
                logger.warning(f"[MP Webhook] No purchase for reference id {purchase_id}")
            else:
                logger.info(
                    f"[MP Webhook] Purchase {purchase_id} -> {confirmation.status.value} "
                    f"(provider status={confirmation.raw_status})"
                )


class CaptureReconciler:
    """Synchronous capture variant (client redirect -> server -> processor)."""

    source = "paypal-capture"

    def __init__(self, store: PrivilegedStore, provider: PaymentProvider) -> None:
        self.store = store
        self.provider = provider

    def capture(self, order_id: str) -> dict:
        try:
            confirmation = self.provider.confirm(order_id)
        except ProviderError as e:
            logger.error(f"[PayPal Capture] order={order_id} failed: status={e.status_code} body={e.body}")
            raise Errors.upstream(self.provider.name, e.to_details())

        if confirmation.status != PurchaseStatus.COMPLETED:
            logger.info(f"[PayPal Capture] order={order_id} not completed: {confirmation.raw_status}")
            return {"status": confirmation.raw_status or confirmation.status.value}

        if confirmation.reference is None:
            logger.error(f"[PayPal Capture] order={order_id} completed without reference_id")
            raise Errors.upstream(self.provider.name, {"reason": "No reference_id found in order"})

        for purchase_id in confirmation.reference:
            purchase = self.store.set_status(purchase_id, PurchaseStatus.COMPLETED, source=self.source)
            if purchase is None:
                logger.warning(f"[PayPal Capture] No purchase for reference id {purchase_id}")
            else:
                logger.info(f"[PayPal Capture] Purchase {purchase_id} marked as completed")

        result = {
            "status": PurchaseStatus.COMPLETED.value,
            "purchase_ids": list(confirmation.reference),
        }
        if confirmation.already_captured:
            result["already_captured"] = True
        return result
