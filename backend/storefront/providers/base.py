"""
Payment Provider Capability

Checkout and reconciliation are written once against PaymentProvider; each
processor (Mercado Pago preference/redirect, PayPal order/capture) adapts its
own API to these value types.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

import requests as http_requests

from storefront.models.purchase import PurchaseStatus
from storefront.references import PurchaseReference

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def quantize_amount(amount) -> Decimal:
    """Two decimal places, half-up (29.995 -> 30.00)."""
    return Decimal(str(amount)).quantize(CENTS, rounding=ROUND_HALF_UP)


class ProviderError(Exception):
    """A processor call failed or answered with an unexpected shape."""

    def __init__(self, provider: str, status_code: Optional[int] = None, body: Any = None, message: str = ""):
        self.provider = provider
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"{provider} request failed (status={status_code})")

    def to_details(self) -> dict:
        return {"status": self.status_code, "reason": str(self)}


@dataclass(frozen=True)
class CallbackUrls:
    success: str
    failure: str
    pending: str


@dataclass(frozen=True)
class IntentRequest:
    reference: PurchaseReference
    title: str
    amount: Decimal
    currency: str
    callbacks: CallbackUrls
    description: Optional[str] = None
    payer_email: Optional[str] = None


@dataclass(frozen=True)
class CheckoutIntent:
    url: str
    provider_reference: Optional[str] = None


@dataclass(frozen=True)
class Confirmation:
    status: PurchaseStatus
    reference: Optional[PurchaseReference]
    transaction_id: Optional[str] = None
    raw_status: Optional[str] = None
    already_captured: bool = False


class PaymentProvider(ABC):
    """
    One external payment processor.

    Subclasses implement create_intent (hosted checkout URL for a reference)
    and confirm (authoritative payment outcome for a processor identifier).
    """

    name: str = "provider"

    def __init__(self, currency: str, conversion_rate: Decimal, timeout: int = 30):
        self.currency = currency
        self.conversion_rate = Decimal(str(conversion_rate))
        self.timeout = timeout

    def convert(self, amount) -> Decimal:
        """Reference-currency amount -> amount charged by this provider."""
        return quantize_amount(Decimal(str(amount)) * self.conversion_rate)

    @abstractmethod
    def create_intent(self, request: IntentRequest) -> CheckoutIntent:
        ...

    @abstractmethod
    def confirm(self, identifier: str) -> Confirmation:
        ...

    def _request(self, method: str, url: str, **kwargs) -> http_requests.Response:
        """Send one outbound call; network failures become ProviderError."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            return http_requests.request(method, url, **kwargs)
        except http_requests.exceptions.Timeout:
            logger.error(f"[{self.name}] {method} {url} timed out")
            raise ProviderError(self.name, message=f"{self.name} request timed out")
        except http_requests.exceptions.RequestException as e:
            logger.error(f"[{self.name}] {method} {url} failed: {e}")
            raise ProviderError(self.name, message=f"{self.name} request failed")

    def _json(self, response: http_requests.Response) -> dict:
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return {}
        return data

    def _fail(self, response: http_requests.Response, action: str) -> ProviderError:
        body = response.text[:2000] if response.text else ""
        logger.error(f"[{self.name}] {action} failed: status={response.status_code} body={body}")
        return ProviderError(self.name, response.status_code, body, f"{self.name} {action} failed")


def parse_reference(raw) -> Optional[PurchaseReference]:
    """Reference string from a processor payload, None when absent or empty."""
    if raw is None:
        return None
    try:
        return PurchaseReference.parse(str(raw))
    except ValueError:
        return None
