"""
PayPal adapter (order / capture)

- create_intent: POST /v2/checkout/orders, the reference string travels as
  purchase_units[0].reference_id and the buyer is sent to the payer-action link
- confirm: POST /v2/checkout/orders/{id}/capture; ORDER_ALREADY_CAPTURED is
  recovered by reading the order back, so repeated captures converge
"""
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

ALREADY_CAPTURED_ISSUE = "ORDER_ALREADY_CAPTURED"
APPROVE_LINK_REL = "payer-action"


class OrderAlreadyCaptured(ProviderError):
    """Capture refused because the order was captured by an earlier call."""


def map_capture_status(raw_status) -> PurchaseStatus:
    if str(raw_status or "").upper() == "COMPLETED":
        return PurchaseStatus.COMPLETED
    return PurchaseStatus.PENDING


def _first_issue(body: dict) -> Optional[str]:
    details = body.get("details") or []
    if details and isinstance(details[0], dict):
        return details[0].get("issue")
    return None


def _reference_id(order: dict) -> Optional[str]:
    units = order.get("purchase_units") or []
    if units and isinstance(units[0], dict):
        return units[0].get("reference_id")
    return None


class PayPalProvider(PaymentProvider):
    name = "paypal"

    def __init__(
        self,
        client_id: str,
        secret: str,
        api_url: str,
        currency: str,
        conversion_rate,
        brand_name: str = "LiveFX",
        timeout: int = 30,
    ):
        super().__init__(currency, conversion_rate, timeout)
        self.client_id = client_id
        self.secret = secret
        self.api_url = api_url.rstrip("/")
        self.brand_name = brand_name

    def _access_token(self) -> str:
        """Client-credentials token, fetched per call and never stored."""
        if not self.client_id or not self.secret:
            raise ProviderError(self.name, message="PayPal credentials not configured")

        response = self._request(
            "POST",
            f"{self.api_url}/v1/oauth2/token",
            auth=(self.client_id, self.secret),
            data={"grant_type": "client_credentials"},
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if not response.ok:
            raise self._fail(response, "auth")

        token = self._json(response).get("access_token")
        if not token:
            raise ProviderError(self.name, response.status_code, None, "PayPal auth returned no token")
        return token

    def _headers(self, token: str) -> dict:
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def create_intent(self, request: IntentRequest) -> CheckoutIntent:
        token = self._access_token()
        order = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": request.reference.serialize(),
                    "description": request.title,
                    "amount": {
                        "currency_code": request.currency,
                        "value": f"{request.amount:.2f}",
                    },
                }
            ],
            "payment_source": {
                "paypal": {
                    "experience_context": {
                        "brand_name": self.brand_name,
                        "landing_page": "LOGIN",
                        "user_action": "PAY_NOW",
                        "return_url": request.callbacks.success,
                        "cancel_url": request.callbacks.failure,
                    }
                }
            },
        }

        response = self._request(
            "POST",
            f"{self.api_url}/v2/checkout/orders",
            json=order,
            headers=self._headers(token),
        )
        if not response.ok:
            raise self._fail(response, "create order")

        data = self._json(response)
        approve_url = next(
            (link.get("href") for link in data.get("links") or [] if link.get("rel") == APPROVE_LINK_REL),
            None,
        )
        if not approve_url:
            raise ProviderError(self.name, response.status_code, None, "PayPal approve link not found")

        logger.info(f"[PayPal] Order created: id={data.get('id')} reference={request.reference}")
        return CheckoutIntent(url=approve_url, provider_reference=data.get("id"))

    def get_order(self, order_id: str, token: Optional[str] = None) -> dict:
        token = token or self._access_token()
        response = self._request(
            "GET",
            f"{self.api_url}/v2/checkout/orders/{order_id}",
            headers=self._headers(token),
        )
        if not response.ok:
            raise self._fail(response, "fetch order")
        return self._json(response)

    def capture(self, order_id: str, token: str) -> dict:
        response = self._request(
            "POST",
            f"{self.api_url}/v2/checkout/orders/{order_id}/capture",
            headers=self._headers(token),
        )
        if response.ok:
            return self._json(response)

        body = self._json(response)
        if _first_issue(body) == ALREADY_CAPTURED_ISSUE:
            raise OrderAlreadyCaptured(self.name, response.status_code, body, "Order already captured")
        raise self._fail(response, "capture")

    def confirm(self, identifier: str) -> Confirmation:
        token = self._access_token()
        try:
            captured = self.capture(identifier, token)
        except OrderAlreadyCaptured:
            logger.info(f"[PayPal] Order {identifier} already captured, reading it back")
            order = self.get_order(identifier, token)
            return Confirmation(
                status=PurchaseStatus.COMPLETED,
                reference=parse_reference(_reference_id(order)),
                transaction_id=identifier,
                raw_status=order.get("status"),
                already_captured=True,
            )

        raw_status = captured.get("status")
        status = map_capture_status(raw_status)
        raw_reference = _reference_id(captured)
        if status == PurchaseStatus.COMPLETED and not raw_reference:
            # Some capture responses omit reference_id; the order still has it
            raw_reference = _reference_id(self.get_order(identifier, token))

        return Confirmation(
            status=status,
            reference=parse_reference(raw_reference),
            transaction_id=str(captured.get("id") or identifier),
            raw_status=raw_status,
        )
