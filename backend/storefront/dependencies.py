"""
Dependencies

FastAPI dependency providers: bearer identity, admin gate, the two stores,
and the external collaborators (payment providers, Drive client).
Tests swap any of these through app.dependency_overrides.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from storefront.configuration import get_settings
from storefront.database import get_db
from storefront.errors import Errors
from storefront.providers.mercadopago import MercadoPagoProvider, MercadoPagoSignatureVerifier
from storefront.providers.paypal import PayPalProvider
from storefront.services.drive import DriveClient
from storefront.stores import PrivilegedStore, UserScopedStore
from storefront.utils.jwt_handler import decode_access_token

settings = get_settings()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization", description="Bearer JWT token"),
) -> AuthenticatedUser:
    """
    Identity from the bearer token.

    Raises:
        AppError: AUTH_ERROR (401) for a missing header, wrong scheme,
            bad signature, expired token or missing subject
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise Errors.auth({"reason": "Invalid authorization header"})

    token = authorization[7:].strip()
    try:
        payload = decode_access_token(token)
    except ValueError as e:
        logger.info(f"[Auth] Token rejected: {e}")
        raise Errors.auth({"reason": "Invalid token"})

    user_id = payload.get("sub")
    if not user_id:
        raise Errors.auth({"reason": "Invalid token payload"})

    return AuthenticatedUser(id=str(user_id), email=payload.get("email"), role=payload.get("role"))


def get_privileged_store(db: Session = Depends(get_db)) -> PrivilegedStore:
    return PrivilegedStore(db)


def get_user_store(
    user: AuthenticatedUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserScopedStore:
    return UserScopedStore(db, user.id)


async def require_admin(
    user: AuthenticatedUser = Depends(get_current_user),
    store: PrivilegedStore = Depends(get_privileged_store),
) -> AuthenticatedUser:
    """Admin is a user_roles row, the token's role claim alone is not enough."""
    if not store.is_admin(user.id):
        logger.warning(f"[Admin] Forbidden: user={user.id}")
        raise Errors.forbidden({"reason": "admin only"})
    return user


def get_mercadopago_provider() -> MercadoPagoProvider:
    return MercadoPagoProvider(
        access_token=settings.MERCADO_PAGO_ACCESS_TOKEN,
        api_url=settings.MERCADO_PAGO_API_URL,
        currency=settings.MERCADO_PAGO_CURRENCY,
        conversion_rate=settings.MERCADO_PAGO_CONVERSION_RATE,
        notification_url=f"{settings.PUBLIC_API_BASE_URL}/mp-webhook",
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )


def get_paypal_provider() -> PayPalProvider:
    return PayPalProvider(
        client_id=settings.PAYPAL_CLIENT_ID,
        secret=settings.PAYPAL_SECRET,
        api_url=settings.PAYPAL_API_URL,
        currency=settings.PAYPAL_CURRENCY,
        conversion_rate=settings.PAYPAL_CONVERSION_RATE,
        brand_name=settings.STORE_BRAND_NAME,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )


def get_mp_signature_verifier() -> Optional[MercadoPagoSignatureVerifier]:
    """None when no webhook secret is configured (verification skipped)."""
    if not settings.MERCADO_PAGO_WEBHOOK_SECRET:
        return None
    return MercadoPagoSignatureVerifier(settings.MERCADO_PAGO_WEBHOOK_SECRET)


def get_drive_client() -> DriveClient:
    return DriveClient(
        service_account_json=settings.GOOGLE_SERVICE_ACCOUNT_JSON,
        token_url=settings.GOOGLE_TOKEN_URL,
        api_url=settings.DRIVE_API_URL,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )
