"""
Legacy postback (Payt)

Unauthenticated, unsigned form or JSON pushes. Field names vary between
payload versions, so each value is looked up through a list of aliases.
"""
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from storefront.constants import PAYT_STATUS_MAP
from storefront.errors import Errors
from storefront.stores import PrivilegedStore
from storefront.utils.masking import mask_email

logger = logging.getLogger(__name__)

STATUS_COLUMN_LENGTH = 20

TRANSACTION_ALIASES = ("transaction_id", "transactionId", "transaction.id", "transaction.code", "transaction_code")
STATUS_ALIASES = ("status", "transaction.payment_status", "payment_status", "transaction.status")
PRODUCT_ALIASES = ("product_id", "productId", "product.id", "product.code", "product_code")
EMAIL_ALIASES = ("customer.email", "buyer_email", "customer_email", "email", "buyer.email")


def _lookup(payload: Mapping, dotted: str):
    """
    "customer.email" matches nested JSON, a flat "customer.email" key, or a
    form-style "customer[email]" key.
    """
    if dotted in payload:
        return payload[dotted]
    if "." in dotted:
        head, _, rest = dotted.partition(".")
        bracketed = f"{head}[{rest.replace('.', '][')}]"
        if bracketed in payload:
            return payload[bracketed]
        nested = payload.get(head)
        if isinstance(nested, Mapping):
            return _lookup(nested, rest)
    return None


def first_of(payload: Mapping, aliases) -> Optional[str]:
    for alias in aliases:
        value = _lookup(payload, alias)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def map_status(raw_status: str) -> str:
    """Known vocabulary -> internal status, anything else kept lower-cased."""
    lowered = raw_status.strip().lower()
    return PAYT_STATUS_MAP.get(lowered, lowered)[:STATUS_COLUMN_LENGTH]


@dataclass(frozen=True)
class Postback:
    transaction_id: str
    raw_status: str
    product: Optional[str]
    email: Optional[str]

    @classmethod
    def parse(cls, payload: Mapping) -> "Postback":
        transaction_id = first_of(payload, TRANSACTION_ALIASES)
        raw_status = first_of(payload, STATUS_ALIASES)
        if not transaction_id or not raw_status:
            raise Errors.validation({"reason": "Missing transaction_id or status"})
        return cls(
            transaction_id=transaction_id,
            raw_status=raw_status,
            product=first_of(payload, PRODUCT_ALIASES),
            email=first_of(payload, EMAIL_ALIASES),
        )


class PostbackService:
    source = "payt-postback"

    def __init__(self, store: PrivilegedStore) -> None:
        self.store = store

    def apply(self, postback: Postback) -> dict:
        status = map_status(postback.raw_status)
        logger.info(
            f"[Postback] transaction={postback.transaction_id} status={postback.raw_status}->{status} "
            f"buyer={mask_email(postback.email)}"
        )

        user = self.store.find_user_by_email(postback.email) if postback.email else None
        if user is None:
            logger.info(f"[Postback] No user for buyer={mask_email(postback.email)}, skipping")
            return {"success": True, "message": "User not found, skipping"}

        product_id = self._resolve_product(postback.product)
        if product_id is None:
            logger.info(f"[Postback] Unresolved product={postback.product}, skipping")
            return {"success": True, "message": "Product not found, skipping"}

        self.store.upsert_purchase(
            user.id,
            product_id,
            status,
            external_reference=postback.transaction_id,
            source=self.source,
        )
        logger.info(f"[Postback] Purchase upserted: user={user.id} product={product_id} status={status}")
        return {"success": True}

    def _resolve_product(self, value: Optional[str]) -> Optional[str]:
        """Accept a product id or a product external code."""
        if not value:
            return None
        product = self.store.get_product(value) or self.store.find_product_by_code(value)
        return product.id if product else None
