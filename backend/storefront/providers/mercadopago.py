"""
Mercado Pago adapter (wallet / redirect preference)

- create_intent: POST /checkout/preferences -> init_point
- confirm: GET /v1/payments/{id} -> status + external_reference
- MercadoPagoSignatureVerifier: x-signature HMAC check for notifications
"""
import hashlib
import hmac
import logging
from typing import Optional

from storefront.models.purchase import PurchaseStatus
from storefront.providers.base import (
    CheckoutIntent,
    Confirmation,
    IntentRequest,
    PaymentProvider,
    ProviderError,
    parse_reference,
)

logger = logging.getLogger(__name__)

MP_STATUS_MAP = {
    "approved": PurchaseStatus.COMPLETED,
    "rejected": PurchaseStatus.FAILED,
    "cancelled": PurchaseStatus.FAILED,
}


def map_payment_status(raw_status) -> PurchaseStatus:
    """approved -> completed, rejected/cancelled -> failed, anything else -> pending"""
    return MP_STATUS_MAP.get(str(raw_status or "").lower(), PurchaseStatus.PENDING)


class MercadoPagoProvider(PaymentProvider):
    name = "mercadopago"

    def __init__(
        self,
        access_token: str,
        api_url: str,
        currency: str,
        conversion_rate,
        notification_url: Optional[str] = None,
        timeout: int = 30,
    ):
        super().__init__(currency, conversion_rate, timeout)
        self.access_token = access_token
        self.api_url = api_url.rstrip("/")
        self.notification_url = notification_url

    def _headers(self) -> dict:
        if not self.access_token:
            raise ProviderError(self.name, message="MERCADO_PAGO_ACCESS_TOKEN not configured")
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def create_intent(self, request: IntentRequest) -> CheckoutIntent:
        preference = {
            "items": [
                {
                    "title": request.title,
                    "description": request.description or request.title,
                    "quantity": 1,
                    "unit_price": float(request.amount),
                    "currency_id": request.currency,
                }
            ],
            "back_urls": {
                "success": request.callbacks.success,
                "failure": request.callbacks.failure,
                "pending": request.callbacks.pending,
            },
            "auto_return": "approved",
            "external_reference": request.reference.serialize(),
        }
        if request.payer_email:
            preference["payer"] = {"email": request.payer_email}
        if self.notification_url:
            preference["notification_url"] = self.notification_url

        response = self._request(
            "POST",
            f"{self.api_url}/checkout/preferences",
            json=preference,
            headers=self._headers(),
        )
        if not response.ok:
            raise self._fail(response, "create preference")

        data = self._json(response)
        init_point = data.get("init_point")
        if not init_point:
            raise ProviderError(self.name, response.status_code, None, "Preference has no init_point")

        logger.info(f"[MercadoPago] Preference created: id={data.get('id')} reference={request.reference}")
        return CheckoutIntent(url=init_point, provider_reference=data.get("id"))

    def confirm(self, identifier: str) -> Confirmation:
        """Fetch the authoritative payment detail for a notification's payment id."""
        response = self._request(
            "GET",
            f"{self.api_url}/v1/payments/{identifier}",
            headers=self._headers(),
        )
        if not response.ok:
            raise self._fail(response, "fetch payment")

        payment = self._json(response)
        raw_status = payment.get("status")
        return Confirmation(
            status=map_payment_status(raw_status),
            reference=parse_reference(payment.get("external_reference")),
            transaction_id=str(payment.get("id") or identifier),
            raw_status=raw_status,
        )


class MercadoPagoSignatureVerifier:
    """
    Validates the `x-signature: ts=<ts>,v1=<hex>` header.

    Manifest: "id:{data.id};request-id:{x-request-id};ts:{ts};" signed with
    HMAC-SHA256 under the webhook secret.
    """

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Webhook secret must not be empty")
        self._secret = secret.encode("utf-8")

    @staticmethod
    def parse_header(signature_header: Optional[str]) -> dict:
        parts = {}
        for item in (signature_header or "").split(","):
            key, sep, value = item.partition("=")
            if sep:
                parts[key.strip()] = value.strip()
        return parts

    @staticmethod
    def build_manifest(data_id: Optional[str], request_id: Optional[str], ts: str) -> str:
        manifest = ""
        if data_id:
            # Alphanumeric ids are signed lower-cased
            manifest += f"id:{str(data_id).lower()};"
        if request_id:
            manifest += f"request-id:{request_id};"
        manifest += f"ts:{ts};"
        return manifest

    def sign(self, data_id: Optional[str], request_id: Optional[str], ts: str) -> str:
        manifest = self.build_manifest(data_id, request_id, ts)
        return hmac.new(self._secret, manifest.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, signature_header: Optional[str], request_id: Optional[str], data_id: Optional[str]) -> bool:
        parts = self.parse_header(signature_header)
        ts = parts.get("ts")
        received = parts.get("v1")
        if not ts or not received:
            return False
        expected = self.sign(data_id, request_id, ts)
        return hmac.compare_digest(expected, received.lower())
